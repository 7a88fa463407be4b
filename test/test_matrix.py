import math

import numpy as np
from pytest import approx, raises

from winding_inductance import LinalgStatus, Matrix
from winding_inductance.matrix import Factorization


def _spd(n: int, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    a = rng.uniform(-25.2, 53.7, size=(n, n))
    s = a @ a.T
    return 0.5 * (s + s.T) + n * np.eye(n)  # Exactly symmetric


def test_construction():
    m = Matrix(3, 2)
    assert m.shape == (3, 2)
    assert m.dtype == np.float64
    assert np.all(m.to_array() == 0.0)
    assert Matrix.empty().shape == (0, 0)
    assert Matrix(2, 2, np.complex128).is_complex

    with raises(ValueError):
        Matrix(2, 2, np.float32)
    with raises(ValueError):
        Matrix(-1, 2)
    with raises(ValueError):
        Matrix.from_array(np.zeros(3))

    c = Matrix.from_array(np.array([[1.0 + 2.0j]]))
    assert c.is_complex


def test_indexing(caplog):
    m = Matrix(2, 3)
    m[1, 2] = 4.5
    assert m[1, 2] == 4.5
    assert m.to_array()[1, 2] == 4.5

    # Out of bounds reads give NaN, writes are dropped
    assert math.isnan(m[2, 0])
    assert math.isnan(m[0, -1])
    m[5, 5] = 1.0
    assert "out of bounds" in caplog.text

    # Complex values don't fit a real matrix
    m[0, 0] = 1.0 + 1.0j
    assert m[0, 0] == 0.0

    c = Matrix(1, 1, np.complex128)
    assert math.isnan(c[3, 3].real)


def test_arithmetic():
    a = Matrix.from_array(np.array([[1.0, 2.0], [3.0, 4.0]]))
    b = Matrix.from_array(np.array([[0.0, 1.0], [1.0, 0.0]]))

    assert np.array_equal((a @ b).to_array(), [[2.0, 1.0], [4.0, 3.0]])
    assert np.array_equal((2.0 * a).to_array(), [[2.0, 4.0], [6.0, 8.0]])
    assert np.array_equal((a * 2.0).to_array(), (2.0 * a).to_array())

    # Mismatches give an empty matrix rather than raising
    assert (a @ Matrix(3, 3)).shape == (0, 0)
    assert (a @ Matrix(2, 2, np.complex128)).shape == (0, 0)
    assert ((1.0 + 1.0j) * a).shape == (0, 0)

    c = Matrix.from_array(np.array([[1.0 + 1.0j]]))
    assert ((2.0j) * c)[0, 0] == approx(-2.0 + 2.0j)


def test_symmetry():
    a = Matrix.from_array(np.array([[1.0, 2.0], [2.0, 4.0]]))
    assert a.is_symmetric()
    a[0, 1] = 2.0 + 1e-15
    assert not a.is_symmetric()
    assert not Matrix(2, 3).is_symmetric()

    h = Matrix.from_array(np.array([[1.0, 2.0 - 1.0j], [2.0 + 1.0j, 3.0]]))
    assert h.is_symmetric()  # Hermitian


def test_positive_definite():
    a = Matrix.from_array(_spd(8))
    status = a.test_positive_definite()
    assert status
    assert status == LinalgStatus(True, 0, "")
    assert a.factorization == Factorization.NONE  # Not overwritten

    status = a.test_positive_definite(overwrite=True)
    assert status
    assert a.factorization == Factorization.CHOLESKY
    lower = a.to_array()
    assert np.allclose(lower @ lower.T, _spd(8))
    assert np.all(np.triu(lower, 1) == 0.0)

    indefinite = Matrix.from_array(np.array([[1.0, 2.0], [2.0, 1.0]]))
    status = indefinite.test_positive_definite(overwrite=True)
    assert not status
    assert status.info == 2
    assert indefinite.factorization == Factorization.NONE
    assert indefinite[0, 1] == 2.0

    assert not Matrix(2, 3).test_positive_definite()
    assert not Matrix.empty().test_positive_definite()

    herm = Matrix.from_array(np.array([[2.0, 1.0j], [-1.0j, 2.0]]))
    assert herm.test_positive_definite()


def test_positive_definite_requires_symmetry():
    """Only the lower triangle reaches LAPACK, so an asymmetric matrix must be caught first"""
    lopsided = Matrix.from_array(np.array([[2.0, 100.0], [0.0, 2.0]]))
    assert not lopsided.is_symmetric()
    status = lopsided.test_positive_definite(overwrite=True)
    assert not status
    assert status.info == -1
    assert "not symmetric" in status.message
    assert lopsided.factorization == Factorization.NONE
    assert lopsided[0, 1] == 100.0

    # Its symmetric counterpart built from the same lower triangle is fine
    assert Matrix.from_array(np.array([[2.0, 0.0], [0.0, 2.0]])).test_positive_definite()


def test_solve_general():
    rng = np.random.default_rng(1)
    a_arr = rng.uniform(-25.2, 53.7, size=(8, 8))
    x_arr = rng.uniform(-5.0, 5.0, size=(8, 2))
    a = Matrix.from_array(a_arr)
    b = a @ Matrix.from_array(x_arr)

    status = a.solve_general(b)
    assert status
    assert np.allclose(b.to_array(), x_arr)
    assert a.factorization == Factorization.NONE
    assert np.array_equal(a.to_array(), a_arr)

    # Keep the LU factors and reuse them
    b1 = Matrix.from_array(a_arr @ x_arr)
    assert a.solve_general(b1, overwrite_a=True)
    assert a.factorization == Factorization.LU
    assert a.pivots is not None
    b2 = Matrix.from_array(a_arr @ x_arr[:, ::-1])
    assert a.solve_general(b2)
    assert np.allclose(b2.to_array(), x_arr[:, ::-1])

    singular = Matrix.from_array(np.array([[1.0, 2.0], [2.0, 4.0]]))
    status = singular.solve_general(Matrix(2, 1))
    assert not status
    assert status.info > 0

    assert not a.solve_general(Matrix(3, 1))
    assert not Matrix(2, 3).solve_general(Matrix(2, 1))


def test_solve_positive_definite():
    a_arr = _spd(6, seed=3)
    x_arr = np.arange(6.0).reshape((6, 1))
    a = Matrix.from_array(a_arr)
    b = Matrix.from_array(a_arr @ x_arr)

    # No factor yet
    status = a.solve_positive_definite(b)
    assert not status
    assert "not been Cholesky" in status.message

    assert a.test_positive_definite(overwrite=True)
    assert a.solve_positive_definite(b)
    assert np.allclose(b.to_array(), x_arr)

    # A Cholesky factor can't be used as a general matrix
    assert not a.solve_general(Matrix(6, 1))


def test_string():
    assert str(Matrix.empty()) == "Matrix(0x0)"
    m = Matrix.from_array(np.array([[1.0, -2.5e-3], [3.0e6, 4.0]]))
    lines = str(m).split("\n")
    assert len(lines) == 2
    assert len(set(len(line) for line in lines)) == 1  # Fixed width
    assert "-2.5000e-03" in lines[0]

    c = Matrix.from_array(np.array([[1.0 + 2.0j, 0.0]]))
    assert "1.0000e+00+2.0000e+00j" in str(c)


def test_json_round_trip():
    rng = np.random.default_rng(2)
    a = Matrix.from_array(rng.normal(size=(4, 3)) * 1e-7)
    b = Matrix.from_json(a.to_json())
    assert b.shape == a.shape
    assert b.dtype == a.dtype
    assert np.array_equal(b.to_array(), a.to_array())

    # Factorization state survives
    lu = Matrix.from_array(rng.normal(size=(5, 5)))
    assert lu.solve_general(Matrix(5, 1), overwrite_a=True)
    lu2 = Matrix.from_json(lu.to_json())
    assert lu2.factorization == Factorization.LU
    assert np.array_equal(lu2.pivots, lu.pivots)
    assert np.array_equal(lu2.to_array(), lu.to_array())

    c = Matrix.from_array(rng.normal(size=(2, 2)) + 1j * rng.normal(size=(2, 2)))
    c2 = Matrix.from_json(c.to_json())
    assert c2.is_complex
    assert np.array_equal(c2.to_array(), c.to_array())

    assert Matrix.from_json(Matrix.empty().to_json()).shape == (0, 0)
