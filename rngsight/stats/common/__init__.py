"""
Generic, reusable statistical building blocks.

- `special`: normal, gamma, beta, chi-square and t distribution functions
- `descriptive`: moments, median, `RunningStatistics`
- `inference`: z/p, chi-square, runs, autocorrelation, Jarque-Bera, Kolmogorov-Smirnov
- `corrections`: Bonferroni, Benjamini-Hochberg, Holm
- `power`: power, sample size, effect sizes, confidence intervals
"""
