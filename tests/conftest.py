import gc

import pytest

from symbolic_algebra import LogLevel, configure_logging, reset_settings, reset_flyweights, symbol


@pytest.fixture(autouse=True)
def restore_global_state():
    """Every test starts and ends with default settings, logging and flyweights"""
    yield
    reset_settings()
    reset_flyweights()
    configure_logging(LogLevel.MINIMAL)


@pytest.fixture
def x():
    return symbol('x')


@pytest.fixture
def y():
    return symbol('y')


@pytest.fixture
def z():
    return symbol('z')


@pytest.fixture
def settled():
    """Collect garbage so that live node counts are stable within a test"""
    gc.collect()
