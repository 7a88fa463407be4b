"""Exception types raised by winding_inductance"""


class InductanceError(Exception):
    """Base class for errors raised during an inductance calculation"""


class QuadratureError(InductanceError, ArithmeticError):
    """An auxiliary integral did not converge within its tolerance and subdivision budget"""


class ScaledArithmeticError(InductanceError, FloatingPointError):
    """
    Reduction of a scaled sum produced a value that is not a finite float.

    This means the scaled representation itself broke down, and the enclosing
    calculation must be abandoned rather than continued with a poisoned value.
    """
