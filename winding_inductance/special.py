"""
Auxiliary functions and closed-form Bessel integrals for the harmonic solution.

References are to R. M. Del Vecchio et al., Transformer Design Principles, 3rd ed.
(chapter 9, "Rabin's method"). The functions `M0` and `M1` are the differences
`I0 - L0` and `I1 - L1` between modified Bessel and modified Struve functions,
which stay O(1) where both parts grow exponentially. They are evaluated by
quadrature of their integral representations.

Integrals of `t I1(t)` and `t K1(t)` are returned as ScaledNumbers with one
term per integration limit. Each term carries `exp(+x)` or `exp(-x)` in its
scale and everything else, including the `(pi/2) * x` prefactor, in its
coefficient, so that downstream products can cancel term by term.
"""

import logging
import math
import warnings
from functools import lru_cache
from typing import Callable

from scipy.integrate import IntegrationWarning, quad
from scipy.special import i0e, i1e, k0e, k1e

from winding_inductance.config import QuadratureSettings
from winding_inductance.errors import QuadratureError
from winding_inductance.scaled import ScaledNumber, Term

logger = logging.getLogger(__name__)

HALF_PI = math.pi / 2.0

_DEFAULT_QUADRATURE = QuadratureSettings()


def _integrate_quarter_turn(
    func: Callable[[float], float], name: str, x: float, settings: QuadratureSettings
) -> float | None:
    """
    Integrate `func(theta)` over [0, pi/2] by adaptive Gauss-Kronrod quadrature.

    Returns:
        The integral, or None if it missed its error budget and `settings.strict` is off
    """
    out = quad(
        func,
        0.0,
        HALF_PI,
        epsabs=settings.abs_tol,
        epsrel=settings.rel_tol,
        limit=settings.limit,
        full_output=1,
    )
    # QUADPACK appends a message to the output only when it did not converge
    if len(out) > 3:
        msg = f"Quadrature for {name}({x}) did not converge: {out[3]}"
        if settings.strict:
            logger.error(msg)
            raise QuadratureError(msg)
        logger.warning(f"{msg}; taking 0.0")
        warnings.warn(msg, IntegrationWarning, stacklevel=3)
        return None

    return out[0]


@lru_cache(maxsize=65536)
def _m0(x: float, settings: QuadratureSettings) -> float:
    result = _integrate_quarter_turn(
        lambda theta: math.exp(-x * math.cos(theta)), "M0", x, settings
    )
    if result is None:
        return 0.0
    return result * 2.0 / math.pi


@lru_cache(maxsize=65536)
def _m1(x: float, settings: QuadratureSettings) -> float:
    result = _integrate_quarter_turn(
        lambda theta: math.exp(-x * math.cos(theta)) * math.cos(theta),
        "M1",
        x,
        settings,
    )
    if result is None:
        return 0.0
    return (1.0 - result) * 2.0 / math.pi


def _m0_integrand(b: float) -> Callable[[float], float]:
    def f(theta: float) -> float:
        c = math.cos(theta)
        if c <= 0.0:
            return b  # Limit at theta -> pi/2
        return -math.expm1(-b * c) / c

    return f


@lru_cache(maxsize=65536)
def _integral_m0_from_zero(b: float, settings: QuadratureSettings) -> float:
    result = _integrate_quarter_turn(_m0_integrand(b), "F", b, settings)
    if result is None:
        return 0.0
    return result * 2.0 / math.pi


def m0(x: float, settings: QuadratureSettings = _DEFAULT_QUADRATURE) -> float:
    """
    DelVecchio 3e, eq. 9.59(a): `M0(x) = (2/pi) int_0^{pi/2} exp(-x cos(theta)) dtheta`

    Args:
        x: [dimensionless] argument, usually `m * r`
        settings: quadrature error budget

    Raises:
        QuadratureError: If the quadrature does not converge and `settings.strict` is set

    Returns:
        M0(x), or 0.0 on a non-strict quadrature failure
    """
    return _m0(float(x), settings)


def m1(x: float, settings: QuadratureSettings = _DEFAULT_QUADRATURE) -> float:
    """
    DelVecchio 3e, eq. 9.59(b):
    `M1(x) = (2/pi) (1 - int_0^{pi/2} exp(-x cos(theta)) cos(theta) dtheta)`

    Args:
        x: [dimensionless] argument, usually `m * r`
        settings: quadrature error budget

    Raises:
        QuadratureError: If the quadrature does not converge and `settings.strict` is set

    Returns:
        M1(x), or 0.0 on a non-strict quadrature failure
    """
    return _m1(float(x), settings)


def integral_m0(
    a: float, b: float, settings: QuadratureSettings = _DEFAULT_QUADRATURE
) -> float:
    """
    DelVecchio 3e, eq. 6.60: `int_a^b M0(t) dt`, as `F(b) - F(a)` with
    `F(b) = (2/pi) int_0^{pi/2} (1 - exp(-b cos(theta))) / cos(theta) dtheta`.

    Raises:
        ValueError: If `b < a`
    """
    if b < a:
        raise ValueError(f"Illegal integral range [{a}, {b}]")
    if a == 0.0:
        return _integral_m0_from_zero(float(b), settings)
    return _integral_m0_from_zero(float(b), settings) - _integral_m0_from_zero(
        float(a), settings
    )


def _t_i1_term(x: float, settings: QuadratureSettings) -> Term | None:
    """Antiderivative of `t I1(t)` at `x`: `(pi/2) x e^x (M1 I0e - M0 I1e)`"""
    if x == 0.0:
        return None
    coefficient = HALF_PI * x * (m1(x, settings) * i0e(x) - m0(x, settings) * i1e(x))
    return (x, float(coefficient))


def _t_k1_term(x: float, settings: QuadratureSettings) -> Term:
    """Negated antiderivative of `t K1(t)` at `x`, less the constant pi/2"""
    if x == 0.0:
        # x K1(x) -> 1 and M0(x) -> 1 as x -> 0
        return (0.0, HALF_PI)
    coefficient = HALF_PI * x * (m1(x, settings) * k0e(x) + m0(x, settings) * k1e(x))
    return (-x, float(coefficient))


def _from_terms(terms: list[Term]) -> ScaledNumber:
    terms = [t for t in terms if t[1] != 0.0]
    if not terms:
        return ScaledNumber.zero()
    return ScaledNumber(tuple(terms))


def integral_t_i1(
    x1: float, x2: float, settings: QuadratureSettings = _DEFAULT_QUADRATURE
) -> ScaledNumber:
    """
    DelVecchio 3e, eq. 9.61(a): `int_x1^x2 t I1(t) dt`
    `= (pi/2) [x (M1(x) I0(x) - M0(x) I1(x))]_x1^x2`

    Args:
        x1: [dimensionless] lower limit, >= 0
        x2: [dimensionless] upper limit, >= x1
        settings: quadrature error budget

    Returns:
        Two-term scaled value anchored at `x2` and `x1` (one term if `x1 == 0`)
    """
    assert 0.0 <= x1 <= x2, "Illegal integral range"
    terms = []
    upper = _t_i1_term(float(x2), settings)
    if upper is not None:
        terms.append(upper)
    lower = _t_i1_term(float(x1), settings)
    if lower is not None:
        terms.append((lower[0], -lower[1]))
    return _from_terms(terms)


def integral_t_k1(
    x1: float, x2: float, settings: QuadratureSettings = _DEFAULT_QUADRATURE
) -> ScaledNumber:
    """
    DelVecchio 3e, eq. 9.61(b): `int_x1^x2 t K1(t) dt`
    `= (pi/2) [x1 (M1 K0 + M0 K1)(x1) - x2 (M1 K0 + M0 K1)(x2)]`

    A lower limit of zero contributes the constant `pi/2`.

    Args:
        x1: [dimensionless] lower limit, >= 0
        x2: [dimensionless] upper limit, >= x1
        settings: quadrature error budget

    Returns:
        Two-term scaled value anchored at `-x1` and `-x2`
    """
    assert 0.0 <= x1 <= x2, "Illegal integral range"
    lower = _t_k1_term(float(x1), settings)
    upper = _t_k1_term(float(x2), settings)
    return _from_terms([lower, (upper[0], -upper[1])])


def _l1_correction(x: float, settings: QuadratureSettings) -> float:
    """`x M0(x) + x^2/pi`, the part of `int_0^x t M1(t) dt` not expressed via `int M0`"""
    return x * m0(x, settings) + x * x / math.pi


def integral_t_l1(
    x1: float, x2: float, settings: QuadratureSettings = _DEFAULT_QUADRATURE
) -> ScaledNumber:
    """
    `int_x1^x2 t L1(t) dt` for the modified Struve function L1, using `L1 = I1 - M1` and
    `int_0^x t M1(t) dt = x M0(x) + x^2/pi - int_0^x M0(t) dt`.

    Args:
        x1: [dimensionless] lower limit, >= 0
        x2: [dimensionless] upper limit, >= x1
        settings: quadrature error budget

    Returns:
        The `t I1` integral's scaled terms plus one unscaled term
    """
    assert 0.0 <= x1 <= x2, "Illegal integral range"
    unscaled = (
        _l1_correction(float(x1), settings)
        - _l1_correction(float(x2), settings)
        + integral_m0(float(x1), float(x2), settings)
    )
    return ScaledNumber.from_float(unscaled) + integral_t_i1(x1, x2, settings)


def i0_over_k0(x: float) -> ScaledNumber:
    """`I0(x) / K0(x)` as a single term anchored at `2 x`"""
    return ScaledNumber.from_term(2.0 * x, float(i0e(x) / k0e(x)))


def i1_scaled(x: float) -> ScaledNumber:
    """`I1(x)` anchored at `x`"""
    return ScaledNumber.from_term(x, float(i1e(x)))


def k1_scaled(x: float) -> ScaledNumber:
    """`K1(x)` anchored at `-x`"""
    return ScaledNumber.from_term(-x, float(k1e(x)))


def l1_scaled(x: float, settings: QuadratureSettings = _DEFAULT_QUADRATURE) -> ScaledNumber:
    """Modified Struve `L1(x) = I1(x) - M1(x)`, with the `I1` part anchored at `x`"""
    return i1_scaled(x) - ScaledNumber.from_float(m1(x, settings))
