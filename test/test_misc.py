import logging

from pytest import raises

from winding_inductance import QuadratureSettings, Settings, setup_logging
from winding_inductance.utils import _progressbar


def test_progressbar():
    """Just make sure it runs and returns the input values"""
    vals = list(range(2, 7))
    bar = _progressbar(vals)
    for i, v in enumerate(bar):
        assert vals[i] == v

    assert list(_progressbar([])) == []


def test_setup_logging(tmp_path):
    log_file = tmp_path / "run.log"
    setup_logging(logging.DEBUG, log_file=str(log_file))
    setup_logging(logging.DEBUG, log_file=str(log_file))  # Re-running replaces handlers
    logger = logging.getLogger("winding_inductance")
    assert len(logger.handlers) == 2

    logging.getLogger("winding_inductance.phase").info("hello from the phase")
    for handler in logger.handlers:
        handler.flush()
    assert "hello from the phase" in log_file.read_text()

    # Leave the test session's logging as it was
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


def test_settings_validation():
    s = Settings(n_harmonics=10, max_workers=1)
    assert s.quadrature.strict

    with raises(AssertionError):
        Settings(n_harmonics=0)
    with raises(AssertionError):
        Settings(max_workers=0)
    with raises(AssertionError):
        Settings(tank_clearance=0.0)
    with raises(AssertionError):
        Settings(radial_tolerance=-1.0)
    with raises(AssertionError):
        QuadratureSettings(abs_tol=0.0)
    with raises(AssertionError):
        QuadratureSettings(limit=0)
