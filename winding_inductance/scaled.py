"""
Log-domain arithmetic for sums of exponentially large and small terms.

The harmonic solution multiplies modified Bessel functions that grow like
`exp(x)` by others that decay like `exp(-x)`, with `x` reaching into the
hundreds for high harmonics, and then subtracts nearly-equal products of
that kind. Forming each product as a plain float would either overflow or
throw away every significant digit of the difference.

A `ScaledNumber` keeps the value as an unevaluated sum

```
    value = sum(exp(scale_i) * coefficient_i)
```

Addition concatenates terms, multiplication takes the cross product of
terms (adding scales, multiplying coefficients), and nothing is evaluated
until `reduce()`. The reduction repeatedly combines the two terms with the
largest scales, so that terms which cancel each other are combined at their
own scale before anything is exponentiated. When the same factor reaches a
term along two different paths (for example `(pi/2) * x` carried in a
coefficient), the two paths produce bit-identical terms and cancel exactly.
"""

import heapq
import math
import numbers
import threading
from dataclasses import dataclass

from winding_inductance.errors import ScaledArithmeticError

_MAX_EXP = 700.0
"""Largest scale difference that is safe to exponentiate (exp(709.78) overflows)"""

Term = tuple[float, float]
"""(scale, coefficient) with value `exp(scale) * coefficient`"""


def _combine(s_max: float, c_max: float, s_min: float, c_min: float) -> Term | None:
    """Merge two terms into one anchored at the smaller scale, or None if they cancel"""
    delta = s_max - s_min
    if delta > _MAX_EXP:
        # The smaller term is far below double precision of the larger one,
        # and the smaller anchor would overflow
        value = c_max + math.exp(-delta) * c_min
        anchor = s_max
    else:
        value = math.exp(delta) * c_max + c_min
        anchor = s_min

    if value == 0.0:
        return None

    return (anchor + math.log(abs(value)), math.copysign(1.0, value))


@dataclass(frozen=True)
class ScaledNumber:
    """
    A real number held as a sum of `exp(scale) * coefficient` terms.

    Instances are immutable; every operator returns a new instance.
    """

    terms: tuple[Term, ...] = ((0.0, 0.0),)
    """(scale, coefficient) pairs, in insertion order"""

    @classmethod
    def zero(cls) -> "ScaledNumber":
        """Canonical zero"""
        return cls(((0.0, 0.0),))

    @classmethod
    def one(cls) -> "ScaledNumber":
        """Unit value, `exp(0) * 1`"""
        return cls(((0.0, 1.0),))

    @classmethod
    def from_float(cls, x: float) -> "ScaledNumber":
        """
        Represent a plain number as `exp(ln|x|) * c`, with `c` within an ulp or two of `sign(x)`.

        The coefficient absorbs the rounding of `exp(ln|x|)`, so `to_float()` gives back `x`
        to within an ulp.
        """
        x = float(x)
        if x == 0.0:
            return cls.zero()
        scale = math.log(abs(x))
        if scale > _MAX_EXP:
            return cls(((scale, math.copysign(1.0, x)),))
        return cls(((scale, x / math.exp(scale)),))

    @classmethod
    def from_term(cls, scale: float, coefficient: float) -> "ScaledNumber":
        """Represent `exp(scale) * coefficient` directly"""
        if coefficient == 0.0:
            return cls.zero()
        return cls(((float(scale), float(coefficient)),))

    def __len__(self) -> int:
        return len(self.terms)

    def __neg__(self) -> "ScaledNumber":
        return ScaledNumber(tuple((s, -c) for s, c in self.terms))

    def __add__(self, other) -> "ScaledNumber":
        if isinstance(other, ScaledNumber):
            return ScaledNumber(self.terms + other.terms)
        if isinstance(other, numbers.Real):
            return self + ScaledNumber.from_float(other)
        return NotImplemented

    def __radd__(self, other) -> "ScaledNumber":
        if isinstance(other, numbers.Real):
            return ScaledNumber.from_float(other) + self
        return NotImplemented

    def __sub__(self, other) -> "ScaledNumber":
        if isinstance(other, ScaledNumber):
            return self + (-other)
        if isinstance(other, numbers.Real):
            return self + ScaledNumber.from_float(-float(other))
        return NotImplemented

    def __rsub__(self, other) -> "ScaledNumber":
        if isinstance(other, numbers.Real):
            return ScaledNumber.from_float(other) + (-self)
        return NotImplemented

    def __mul__(self, other) -> "ScaledNumber":
        if isinstance(other, ScaledNumber):
            terms = []
            for sa, ca in self.terms:
                for sb, cb in other.terms:
                    c = ca * cb
                    if c != 0.0:
                        terms.append((sa + sb, c))
            if not terms:
                return ScaledNumber.zero()
            return ScaledNumber(tuple(terms))
        if isinstance(other, numbers.Real):
            k = float(other)
            if k == 0.0:
                return ScaledNumber.zero()
            return ScaledNumber(tuple((s, c * k) for s, c in self.terms))
        return NotImplemented

    def __rmul__(self, other) -> "ScaledNumber":
        if isinstance(other, numbers.Real):
            return self * other
        return NotImplemented

    def reduce(self) -> "ScaledNumber":
        """
        Collapse to a single term, combining largest scales first.

        Returns:
            A single-term ScaledNumber with the same value, or the canonical zero
        """
        # Max-heap on scale; the insertion counter keeps equal scales in a stable order
        heap = [(-s, i, s, c) for i, (s, c) in enumerate(self.terms) if c != 0.0]
        if not heap:
            return ScaledNumber.zero()
        heapq.heapify(heap)
        count = len(heap)

        while len(heap) > 1:
            _, _, s_max, c_max = heapq.heappop(heap)
            _, _, s_min, c_min = heapq.heappop(heap)
            term = _combine(s_max, c_max, s_min, c_min)
            if term is not None:
                heapq.heappush(heap, (-term[0], count, term[0], term[1]))
                count += 1

        if not heap:
            return ScaledNumber.zero()

        _, _, s, c = heap[0]
        return ScaledNumber(((s, c),))

    def to_float(self) -> float:
        """
        Evaluate as an ordinary float.

        Raises:
            ScaledArithmeticError: If the reduced value is NaN or not representable

        Returns:
            The value of the sum
        """
        ((s, c),) = self.reduce().terms
        if c == 0.0:
            return 0.0
        try:
            value = c * math.exp(s)
        except OverflowError as err:
            raise ScaledArithmeticError(
                f"Scaled value exp({s}) * {c} overflows a double"
            ) from err
        if not math.isfinite(value):
            raise ScaledArithmeticError(
                f"Scaled reduction produced a non-finite value from exp({s}) * {c}"
            )
        return value

    def __float__(self) -> float:
        return self.to_float()


class ScaledSum:
    """
    Accumulator for ScaledNumbers contributed from several threads.

    Each contribution is appended under a single lock; nothing is reduced
    until `total` is read.
    """

    def __init__(self):
        self._terms: list[Term] = []
        self._lock = threading.Lock()

    def add(self, value: ScaledNumber) -> None:
        """Append all terms of `value` to the running sum"""
        with self._lock:
            self._terms.extend(value.terms)

    @property
    def total(self) -> ScaledNumber:
        """Unreduced sum of everything added so far"""
        with self._lock:
            if not self._terms:
                return ScaledNumber.zero()
            return ScaledNumber(tuple(self._terms))
