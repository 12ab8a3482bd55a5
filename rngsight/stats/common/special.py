"""
rngsight.stats.common.special
=============================

Special functions and distribution tails used by the statistics engine.

Everything here is plain-float arithmetic with closed-form or iterative
approximations, so results are deterministic and independent of any
numerical backend:

- `normal_cdf`: Abramowitz & Stegun 26.2.17 (absolute error < 7.5e-8),
  saturating to 0/1 beyond |z| > 6.
- `normal_inverse`: Acklam's rational approximation in three regions.
- `t_inverse`: Cornish-Fisher expansion around the normal quantile.
- `gamma` / `log_gamma`: Lanczos (g = 7, nine coefficients) with reflection.
- `regularized_gamma_p` / `regularized_gamma_q`: series below ``a + 1``,
  Lentz continued fraction above.
- `regularized_incomplete_beta`: continued fraction with a log-gamma prefactor.
- `chi_square_probability`, `t_distribution_probability`: right-tail and
  two-tailed p-values built on the above.

Examples
--------
>>> from rngsight.stats.common.special import normal_cdf, normal_inverse
>>> normal_cdf(0.0)
0.5
>>> round(normal_inverse(0.975), 4)
1.96
>>> chi_square_probability(0.0, 4)
1.0
"""

from __future__ import annotations
import math

_SQRT2 = math.sqrt(2.0)
_LOG_SQRT_2PI = 0.5 * math.log(2.0 * math.pi)

# Abramowitz & Stegun 26.2.17
_AS_P = 0.2316419
_AS_D = 0.3989423
_AS_B = (0.3193815, -0.3565638, 1.781478, -1.821256, 1.330274)

# Acklam's inverse-normal coefficients
_A = (
    -3.969683028665376e01,
    2.209460984245205e02,
    -2.759285104469687e02,
    1.383577518672690e02,
    -3.066479806614716e01,
    2.506628277459239e00,
)
_B = (
    -5.447609879822406e01,
    1.615858368580409e02,
    -1.556989798598866e02,
    6.680131188771972e01,
    -1.328068155288572e01,
)
_C = (
    -7.784894002430293e-03,
    -3.223964580411365e-01,
    -2.400758277161838e00,
    -2.549732539343734e00,
    4.374664141464968e00,
    2.938163982698783e00,
)
_D = (
    7.784695709041462e-03,
    3.224671290700398e-01,
    2.445134137142996e00,
    3.754408661907416e00,
)
_P_LOW = 0.02425

# Lanczos, g = 7
_LANCZOS_G = 7
_LANCZOS = (
    0.99999999999980993,
    676.5203681218851,
    -1259.1392167224028,
    771.32342877765313,
    -176.61502916214059,
    12.507343278686905,
    -0.13857109526572012,
    9.9843695780195716e-6,
    1.5056327351493116e-7,
)

_EPS = 1e-15
_FPMIN = 1e-300


# ---- normal distribution ----


def normal_cdf(z: float) -> float:
    """Standard normal cumulative distribution function."""
    if z < -6.0:
        return 0.0
    if z > 6.0:
        return 1.0
    if z == 0.0:
        return 0.5
    t = 1.0 / (1.0 + _AS_P * abs(z))
    d = _AS_D * math.exp(-z * z / 2.0)
    b1, b2, b3, b4, b5 = _AS_B
    p = d * t * (b1 + t * (b2 + t * (b3 + t * (b4 + t * b5))))
    return 1.0 - p if z > 0 else p


def normal_two_tailed_p(z: float) -> float:
    """Two-tailed p-value ``2 * (1 - Phi(|z|))``."""
    return min(1.0, max(0.0, 2.0 * (1.0 - normal_cdf(abs(z)))))


def normal_one_tailed_p(z: float) -> float:
    """Upper-tail p-value ``1 - Phi(z)``."""
    return 1.0 - normal_cdf(z)


def normal_inverse(p: float) -> float:
    """Quantile function of the standard normal distribution.

    Args:
        p: Probability strictly between 0 and 1.

    Raises:
        ValueError: If `p` is outside (0, 1).
    """
    if not 0.0 < p < 1.0:
        raise ValueError(f"normal_inverse requires 0 < p < 1 (got {p})")

    if p < _P_LOW:
        q = math.sqrt(-2.0 * math.log(p))
        return _tail_quantile(q)
    if p > 1.0 - _P_LOW:
        q = math.sqrt(-2.0 * math.log(1.0 - p))
        return -_tail_quantile(q)

    q = p - 0.5
    r = q * q
    a1, a2, a3, a4, a5, a6 = _A
    b1, b2, b3, b4, b5 = _B
    num = (((((a1 * r + a2) * r + a3) * r + a4) * r + a5) * r + a6) * q
    den = ((((b1 * r + b2) * r + b3) * r + b4) * r + b5) * r + 1.0
    return num / den


def _tail_quantile(q: float) -> float:
    c1, c2, c3, c4, c5, c6 = _C
    d1, d2, d3, d4 = _D
    num = ((((c1 * q + c2) * q + c3) * q + c4) * q + c5) * q + c6
    den = (((d1 * q + d2) * q + d3) * q + d4) * q + 1.0
    return num / den


def erfc(x: float) -> float:
    """Complementary error function via ``2 * (1 - Phi(x * sqrt(2)))``."""
    if x > 6.0:
        return 0.0
    if x < -6.0:
        return 2.0
    return 2.0 * (1.0 - normal_cdf(x * _SQRT2))


def erf(x: float) -> float:
    return 1.0 - erfc(x)


# ---- gamma family ----


def gamma(z: float) -> float:
    """Gamma function (Lanczos approximation, reflection below 0.5).

    Returns ``inf`` where the result exceeds the float range.
    """
    if z < 0.5:
        if z == math.floor(z):
            raise ValueError(f"gamma is undefined at non-positive integer {z}")
        return math.pi / (math.sin(math.pi * z) * gamma(1.0 - z))
    lg = log_gamma(z)
    if lg > 709.0:
        return math.inf
    return math.exp(lg)


def log_gamma(z: float) -> float:
    """Natural log of ``|Gamma(z)|``, evaluated without forming Gamma(z)."""
    if z < 0.5:
        if z == math.floor(z):
            raise ValueError(f"log_gamma is undefined at non-positive integer {z}")
        s = math.sin(math.pi * z)
        return math.log(math.pi / abs(s)) - log_gamma(1.0 - z)
    z -= 1.0
    x = _LANCZOS[0]
    for i in range(1, _LANCZOS_G + 2):
        x += _LANCZOS[i] / (z + i)
    t = z + _LANCZOS_G + 0.5
    return _LOG_SQRT_2PI + (z + 0.5) * math.log(t) - t + math.log(x)


def _gamma_series(a: float, x: float) -> float:
    """Lower regularized gamma P(a, x) by its power series."""
    max_terms = 100 + int(a)
    ap = a
    term = 1.0 / a
    total = term
    for _ in range(max_terms):
        ap += 1.0
        term *= x / ap
        total += term
        if abs(term) < abs(total) * _EPS:
            break
    return total * math.exp(-x + a * math.log(x) - log_gamma(a))


def _gamma_continued_fraction(a: float, x: float) -> float:
    """Upper regularized gamma Q(a, x) by modified Lentz continued fraction."""
    max_terms = 100 + int(a)
    b = x + 1.0 - a
    c = 1.0 / _FPMIN
    d = 1.0 / b
    h = d
    for i in range(1, max_terms + 1):
        an = -i * (i - a)
        b += 2.0
        d = an * d + b
        if abs(d) < _FPMIN:
            d = _FPMIN
        c = b + an / c
        if abs(c) < _FPMIN:
            c = _FPMIN
        d = 1.0 / d
        delta = d * c
        h *= delta
        if abs(delta - 1.0) < _EPS:
            break
    return math.exp(-x + a * math.log(x) - log_gamma(a)) * h


def regularized_gamma_p(a: float, x: float) -> float:
    """Lower regularized incomplete gamma function P(a, x)."""
    if a <= 0 or x < 0:
        raise ValueError(f"regularized_gamma_p requires a > 0 and x >= 0 (got a={a}, x={x})")
    if x == 0:
        return 0.0
    if x < a + 1.0:
        return min(1.0, _gamma_series(a, x))
    return max(0.0, 1.0 - _gamma_continued_fraction(a, x))


def regularized_gamma_q(a: float, x: float) -> float:
    """Upper regularized incomplete gamma function Q(a, x) = 1 - P(a, x)."""
    if a <= 0 or x < 0:
        raise ValueError(f"regularized_gamma_q requires a > 0 and x >= 0 (got a={a}, x={x})")
    if x == 0:
        return 1.0
    if x < a + 1.0:
        return max(0.0, 1.0 - _gamma_series(a, x))
    return min(1.0, _gamma_continued_fraction(a, x))


# ---- beta family ----


def _beta_continued_fraction(a: float, b: float, x: float) -> float:
    qab = a + b
    qap = a + 1.0
    qam = a - 1.0
    c = 1.0
    d = 1.0 - qab * x / qap
    if abs(d) < _FPMIN:
        d = _FPMIN
    d = 1.0 / d
    h = d
    for m in range(1, 201):
        m2 = 2 * m
        aa = m * (b - m) * x / ((qam + m2) * (a + m2))
        d = 1.0 + aa * d
        if abs(d) < _FPMIN:
            d = _FPMIN
        c = 1.0 + aa / c
        if abs(c) < _FPMIN:
            c = _FPMIN
        d = 1.0 / d
        h *= d * c

        aa = -(a + m) * (qab + m) * x / ((a + m2) * (qap + m2))
        d = 1.0 + aa * d
        if abs(d) < _FPMIN:
            d = _FPMIN
        c = 1.0 + aa / c
        if abs(c) < _FPMIN:
            c = _FPMIN
        d = 1.0 / d
        delta = d * c
        h *= delta
        if abs(delta - 1.0) < _EPS:
            break
    return h


def regularized_incomplete_beta(a: float, b: float, x: float) -> float:
    """Regularized incomplete beta function I_x(a, b)."""
    if a <= 0 or b <= 0:
        raise ValueError(f"incomplete beta requires a, b > 0 (got a={a}, b={b})")
    if not 0.0 <= x <= 1.0:
        raise ValueError(f"incomplete beta requires 0 <= x <= 1 (got {x})")
    if x == 0.0:
        return 0.0
    if x == 1.0:
        return 1.0
    log_bt = (
        log_gamma(a + b)
        - log_gamma(a)
        - log_gamma(b)
        + a * math.log(x)
        + b * math.log1p(-x)
    )
    bt = math.exp(log_bt)
    if x < (a + 1.0) / (a + b + 2.0):
        return bt * _beta_continued_fraction(a, b, x) / a
    return 1.0 - bt * _beta_continued_fraction(b, a, 1.0 - x) / b


# ---- distribution tails ----


def chi_square_probability(x: float, df: float) -> float:
    """Right-tail probability of a chi-square statistic.

    For ``df > 100`` the Fisher approximation ``sqrt(2x) - sqrt(2df - 1)`` is
    used; otherwise ``Q(df/2, x/2)``.

    Raises:
        ValueError: If ``x < 0`` or ``df <= 0``.
    """
    if x < 0 or df <= 0:
        raise ValueError(f"chi_square_probability requires x >= 0 and df > 0 (got x={x}, df={df})")
    if x == 0:
        return 1.0
    if df > 100:
        z = math.sqrt(2.0 * x) - math.sqrt(2.0 * df - 1.0)
        return 1.0 - normal_cdf(z)
    return regularized_gamma_q(df / 2.0, x / 2.0)


def t_distribution_probability(t: float, df: float) -> float:
    """Two-tailed p-value of Student's t (normal approximation above df 1000)."""
    if df <= 0:
        raise ValueError(f"t_distribution_probability requires df > 0 (got {df})")
    if df > 1000:
        return normal_two_tailed_p(t)
    x = df / (df + t * t)
    return regularized_incomplete_beta(df / 2.0, 0.5, x)


def t_inverse(p: float, df: float) -> float:
    """Approximate quantile of Student's t via a Cornish-Fisher expansion."""
    z = normal_inverse(p)
    if df > 1000:
        return z
    z2 = z * z
    z4 = z2 * z2
    correction = (
        (z2 + 1.0) / (4.0 * df)
        + (5.0 * z4 + 16.0 * z2 + 3.0) / (96.0 * df * df)
        + (3.0 * z4 * z2 + 19.0 * z4 + 17.0 * z2 - 15.0) / (384.0 * df**3)
    )
    return z + z * correction
