"""
Dense matrix with LAPACK-backed positive-definite check and linear solves.

Contract violations (out-of-range indices, mismatched shapes or dtypes) are
logged and answered with a sentinel (NaN, or an empty 0x0 matrix) rather than
raised. Linear-algebra outcomes are reported as a `LinalgStatus`.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from numbers import Number

import numpy as np
from numpy.typing import NDArray
from scipy.linalg import get_lapack_funcs

logger = logging.getLogger(__name__)

_DTYPES = (np.dtype(np.float64), np.dtype(np.complex128))


class Factorization(str, Enum):
    """What the matrix buffer currently holds"""

    NONE = "none"
    CHOLESKY = "cholesky"
    LU = "lu"


@dataclass(frozen=True)
class LinalgStatus:
    """Outcome of a LAPACK call; truthy on success"""

    ok: bool
    info: int = 0
    """LAPACK `info`: 0 on success, <0 for an illegal argument, >0 for a numerical failure"""
    message: str = ""

    def __bool__(self) -> bool:
        return self.ok


class Matrix:
    """
    Column-major `rows x columns` matrix of float64 or complex128.

    After a factorization with overwrite requested, the buffer holds the factors
    (lower Cholesky factor, or packed LU with `pivots`), as LAPACK leaves them.
    """

    def __init__(self, rows: int, columns: int, dtype=np.float64):
        dtype = np.dtype(dtype)
        if dtype not in _DTYPES:
            raise ValueError(f"Unsupported matrix dtype {dtype}")
        if rows < 0 or columns < 0:
            raise ValueError(f"Matrix shape must not be negative, got {rows}x{columns}")
        self._data: NDArray = np.zeros((rows, columns), dtype=dtype, order="F")
        self.factorization = Factorization.NONE
        self.pivots: NDArray | None = None

    @classmethod
    def empty(cls, dtype=np.float64) -> "Matrix":
        """0x0 matrix, returned in place of a result that could not be formed"""
        return cls(0, 0, dtype)

    @classmethod
    def from_array(cls, a: NDArray) -> "Matrix":
        """Copy a 2D array into a new matrix, promoting to float64 or complex128"""
        a = np.asarray(a)
        if a.ndim != 2:
            raise ValueError(f"Expected a 2D array, got {a.ndim}D")
        dtype = np.complex128 if np.iscomplexobj(a) else np.float64
        out = cls(a.shape[0], a.shape[1], dtype)
        out._data[:, :] = a
        return out

    @property
    def rows(self) -> int:
        return self._data.shape[0]

    @property
    def columns(self) -> int:
        return self._data.shape[1]

    @property
    def shape(self) -> tuple[int, int]:
        return self._data.shape

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    @property
    def is_complex(self) -> bool:
        return self.dtype == np.complex128

    def to_array(self) -> NDArray:
        """Copy of the buffer as a 2D numpy array"""
        return self._data.copy(order="F")

    def copy(self) -> "Matrix":
        out = Matrix(self.rows, self.columns, self.dtype)
        out._data[:, :] = self._data
        out.factorization = self.factorization
        out.pivots = None if self.pivots is None else self.pivots.copy()
        return out

    def _in_bounds(self, key) -> bool:
        i, j = key
        if 0 <= i < self.rows and 0 <= j < self.columns:
            return True
        logger.error(f"Index ({i}, {j}) out of bounds for {self.rows}x{self.columns} matrix")
        return False

    def __getitem__(self, key: tuple[int, int]):
        if not self._in_bounds(key):
            return complex(np.nan, np.nan) if self.is_complex else np.nan
        return self._data[key].item()

    def __setitem__(self, key: tuple[int, int], value) -> None:
        if not self._in_bounds(key):
            return
        if not self.is_complex and isinstance(value, complex):
            logger.error(f"Cannot store complex value {value} in a real matrix")
            return
        self._data[key] = value

    def __mul__(self, scalar) -> "Matrix":
        if not isinstance(scalar, Number) or isinstance(scalar, bool):
            return NotImplemented
        if not self.is_complex and isinstance(scalar, complex):
            logger.error("Cannot scale a real matrix by a complex scalar")
            return Matrix.empty(self.dtype)
        out = Matrix(self.rows, self.columns, self.dtype)
        out._data[:, :] = self._data * scalar
        return out

    __rmul__ = __mul__

    def __matmul__(self, other: "Matrix") -> "Matrix":
        if not isinstance(other, Matrix):
            return NotImplemented
        if self.dtype != other.dtype:
            logger.error(f"Cannot multiply {self.dtype} matrix by {other.dtype} matrix")
            return Matrix.empty(self.dtype)
        if self.columns != other.rows:
            logger.error(f"Cannot multiply {self.shape} matrix by {other.shape} matrix")
            return Matrix.empty(self.dtype)
        out = Matrix(self.rows, other.columns, self.dtype)
        out._data[:, :] = self._data @ other._data
        return out

    def is_symmetric(self) -> bool:
        """Exact symmetry (Hermitian symmetry for complex matrices)"""
        if self.rows != self.columns:
            return False
        return bool(np.array_equal(self._data, self._data.conj().T))

    def test_positive_definite(self, overwrite: bool = False) -> LinalgStatus:
        """
        Attempt a Cholesky factorization.

        Args:
            overwrite: If the factorization succeeds, keep the lower factor in this
                matrix's buffer so that `solve_positive_definite` can use it

        Returns:
            Success, or the LAPACK `info` of the failed factorization (-1 for a
            matrix that is not square, not symmetric, empty, or already factorized)
        """
        if self.rows != self.columns:
            return LinalgStatus(False, -1, f"Matrix is not square: {self.shape}")
        if self.factorization != Factorization.NONE:
            return LinalgStatus(
                False, -1, f"Matrix already holds a {self.factorization.value} factorization"
            )
        if self.rows == 0:
            return LinalgStatus(False, -1, "Matrix is empty")
        # potrf only reads the lower triangle
        if not self.is_symmetric():
            return LinalgStatus(False, -1, "Matrix is not symmetric")

        (potrf,) = get_lapack_funcs(("potrf",), (self._data,))
        factor, info = potrf(self._data, lower=True, clean=True, overwrite_a=False)
        if info != 0:
            if info > 0:
                msg = f"Leading minor of order {info} is not positive-definite"
            else:
                msg = f"Illegal value in argument {-info} of potrf"
            return LinalgStatus(False, int(info), msg)

        if overwrite:
            self._data = np.asfortranarray(factor)
            self.factorization = Factorization.CHOLESKY
        return LinalgStatus(True)

    def _check_rhs(self, b: "Matrix") -> LinalgStatus | None:
        if self.rows != self.columns:
            return LinalgStatus(False, -1, f"Coefficient matrix is not square: {self.shape}")
        if b.rows != self.rows:
            return LinalgStatus(
                False, -2, f"Right-hand side has {b.rows} rows, expected {self.rows}"
            )
        if b.dtype != self.dtype:
            return LinalgStatus(False, -2, f"Right-hand side is {b.dtype}, expected {self.dtype}")
        if b.factorization != Factorization.NONE:
            return LinalgStatus(False, -2, "Right-hand side holds a factorization")
        return None

    def solve_general(self, b: "Matrix", overwrite_a: bool = False) -> LinalgStatus:
        """
        Solve `A X = B` by LU decomposition with partial pivoting.
        The solution is written into `b`.

        Args:
            b: Right-hand side(s), overwritten with the solution
            overwrite_a: Keep the LU factors and pivots in this matrix for later solves.
                A matrix that already holds LU factors is solved against directly.

        Returns:
            Success, or the LAPACK `info` of the failed step
        """
        bad = self._check_rhs(b)
        if bad is not None:
            return bad
        if self.factorization == Factorization.CHOLESKY:
            return LinalgStatus(False, -1, "Matrix holds a Cholesky factor; use solve_positive_definite")

        if self.factorization == Factorization.LU:
            lu, piv = self._data, self.pivots
        else:
            (getrf,) = get_lapack_funcs(("getrf",), (self._data,))
            lu, piv, info = getrf(self._data, overwrite_a=False)
            if info != 0:
                if info > 0:
                    msg = f"Matrix is singular: U[{info - 1}, {info - 1}] is exactly zero"
                else:
                    msg = f"Illegal value in argument {-info} of getrf"
                return LinalgStatus(False, int(info), msg)
            if overwrite_a:
                self._data = np.asfortranarray(lu)
                self.pivots = piv
                self.factorization = Factorization.LU

        (getrs,) = get_lapack_funcs(("getrs",), (lu,))
        x, info = getrs(lu, piv, b._data, overwrite_b=False)
        if info != 0:
            return LinalgStatus(False, int(info), f"Illegal value in argument {-info} of getrs")
        b._data = np.asfortranarray(x)
        return LinalgStatus(True)

    def solve_positive_definite(self, b: "Matrix") -> LinalgStatus:
        """
        Solve `A X = B` using the Cholesky factor left by `test_positive_definite(overwrite=True)`.
        The solution is written into `b`.
        """
        bad = self._check_rhs(b)
        if bad is not None:
            return bad
        if self.factorization != Factorization.CHOLESKY:
            return LinalgStatus(False, -1, "Matrix has not been Cholesky-factorized")

        (potrs,) = get_lapack_funcs(("potrs",), (self._data,))
        x, info = potrs(self._data, b._data, lower=True, overwrite_b=False)
        if info != 0:
            return LinalgStatus(False, int(info), f"Illegal value in argument {-info} of potrs")
        b._data = np.asfortranarray(x)
        return LinalgStatus(True)

    def __str__(self) -> str:
        if self.rows == 0 or self.columns == 0:
            return f"Matrix({self.rows}x{self.columns})"
        if self.is_complex:
            fmt = "{:>24}".format
            cells = [
                [fmt(f"{v.real:.4e}{v.imag:+.4e}j") for v in row] for row in self._data
            ]
        else:
            cells = [[f"{v:>12.4e}" for v in row] for row in self._data]
        return "\n".join(" ".join(row) for row in cells)

    def __repr__(self) -> str:
        return f"Matrix(rows={self.rows}, columns={self.columns}, dtype={self.dtype}, factorization={self.factorization.value})"

    def to_json(self) -> str:
        """Serialize shape, dtype, factorization state and the column-major buffer"""
        flat = self._data.ravel(order="F")
        if self.is_complex:
            data = [[float(v.real), float(v.imag)] for v in flat]
        else:
            data = [float(v) for v in flat]
        return json.dumps(
            {
                "dtype": str(self.dtype),
                "rows": self.rows,
                "columns": self.columns,
                "factorization": self.factorization.value,
                "pivots": None if self.pivots is None else [int(p) for p in self.pivots],
                "data": data,
            }
        )

    @classmethod
    def from_json(cls, s: str) -> "Matrix":
        """Inverse of `to_json`"""
        d = json.loads(s)
        out = cls(d["rows"], d["columns"], d["dtype"])
        if out.is_complex:
            flat = np.array([complex(re, im) for re, im in d["data"]], dtype=np.complex128)
        else:
            flat = np.array(d["data"], dtype=np.float64)
        out._data = np.asfortranarray(flat.reshape((out.rows, out.columns), order="F"))
        out.factorization = Factorization(d["factorization"])
        if d["pivots"] is not None:
            out.pivots = np.array(d["pivots"], dtype=np.int32)
        return out
