"""
Statistical functions for judging a random trial stream.

1. **Common** (rngsight.stats.common):
   Generic building blocks independent of the trial format: special
   functions, descriptive statistics, hypothesis tests, corrections and
   power analysis.

2. **Schemes** (rngsight.stats.schemes):
   Applications to a specific data shape; `trials` treats each value as a
   Binomial(bits, 1/2) count.

Example:
--------
>>> from rngsight.stats.common.special import normal_cdf
>>> normal_cdf(0.0)
0.5
"""

from rngsight.stats import common, schemes

__all__ = ["common", "schemes"]
