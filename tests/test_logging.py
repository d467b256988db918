import logging
import os

from configs.config import get_config
from logging_config import RUNNER_LOGGER, setup_logging

cfg = get_config()


def _flush(logger):
    for handler in logger.handlers:
        handler.flush()
    for handler in logging.getLogger().handlers:
        handler.flush()


def _read(name):
    with open(os.path.join(cfg.LOG_DIR, name), encoding="utf8") as handle:
        return handle.read()


def test_tool_output_goes_to_transcriber_log_only():
    setup_logging()
    runner_logger = logging.getLogger(RUNNER_LOGGER)

    runner_logger.debug("[1700000000000-logs stdout] decoding chunk 7")
    _flush(runner_logger)

    assert "decoding chunk 7" in _read(cfg.LOG_FILE_TRANSCRIBER)
    assert "decoding chunk 7" not in _read(cfg.LOG_FILE_APP)


def test_runner_info_reaches_app_log():
    setup_logging()
    runner_logger = logging.getLogger(RUNNER_LOGGER)

    runner_logger.info("Job 1700000000000-logs running as pid 42")
    _flush(runner_logger)

    assert "running as pid 42" in _read(cfg.LOG_FILE_APP)
    assert "running as pid 42" in _read(cfg.LOG_FILE_TRANSCRIBER)
