import logging

import pytest

from Calcigraph.shared import constants, error_handling
from Calcigraph.shared.logging_config import get_logger, setup_logging


@pytest.fixture
def clean_logger():
    yield
    logger = logging.getLogger('Calcigraph')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def test_setup_logging_writes_files(tmp_path, clean_logger):
    logger = setup_logging(log_dir=tmp_path, log_filename="run.log", console=False)
    get_logger('core.test').info("hello from the test")
    for handler in logger.handlers:
        handler.flush()

    assert (tmp_path / "run.log").exists()
    assert "hello from the test" in (tmp_path / "app.log").read_text()


def test_setup_logging_replaces_handlers(tmp_path, clean_logger):
    setup_logging(log_dir=tmp_path, console=True)
    logger = setup_logging(dev_mode=True, log_dir=tmp_path, console=True)
    assert len(logger.handlers) == 3
    assert logger.handlers[0].level == logging.DEBUG


def test_defaults_come_from_constants(tmp_path, monkeypatch, clean_logger):
    monkeypatch.setattr(constants, 'LOG_DIR', tmp_path / "default_logs")
    logger = setup_logging(dev_mode=True, console=False)
    assert (tmp_path / "default_logs" / constants.LATEST_LOG_NAME).exists()
    assert all(handler.formatter._fmt == constants.DEV_LOG_FORMAT for handler in logger.handlers)


def test_get_logger_namespacing():
    assert get_logger('core.analysis').name == 'Calcigraph.core.analysis'
    assert get_logger('Calcigraph.core').name == 'Calcigraph.core'
    assert get_logger('Calcigraph').name == 'Calcigraph'


@pytest.mark.parametrize("error, base", [
    (error_handling.FileReadError, IOError),
    (error_handling.UnsupportedFormatError, ValueError),
    (error_handling.ConfigurationError, ValueError),
    (error_handling.AlignmentError, error_handling.CalcigraphError),
    (error_handling.ExportError, error_handling.CalcigraphError),
])
def test_error_hierarchy(error, base):
    assert issubclass(error, base)
    assert issubclass(error, error_handling.CalcigraphError)


def test_warnings_are_user_warnings():
    for warning in (error_handling.DegenerateTraceWarning, error_handling.InsufficientSampleWarning,
                    error_handling.EmptyStimulusWarning):
        assert issubclass(warning, error_handling.CalcigraphWarning)
        assert issubclass(warning, UserWarning)
