"""
Tests for logging setup — level precedence, file output, request logger.
"""

import logging
from pathlib import Path

import pytest

from emap.core.observability.logging_config import level_from_name, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    werkzeug_level = logging.getLogger("werkzeug").level
    yield
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("werkzeug").setLevel(werkzeug_level)


class TestLevels:
    def test_default_is_warning(self):
        assert setup_logging(env={}) == logging.WARNING

    def test_env_level(self):
        assert setup_logging(env={"EMAP_LOG_LEVEL": "info"}) == logging.INFO

    def test_cli_flag_beats_env(self):
        assert setup_logging("DEBUG", env={"EMAP_LOG_LEVEL": "ERROR"}) == logging.DEBUG

    @pytest.mark.parametrize("name", [None, "", "loud", "BASIC_FORMAT"])
    def test_unknown_names_fall_back(self, name):
        assert level_from_name(name) == logging.WARNING

    def test_request_logger_quiet_unless_debug(self):
        setup_logging("INFO", env={})
        assert logging.getLogger("werkzeug").level == logging.WARNING
        setup_logging("DEBUG", env={})
        assert logging.getLogger("werkzeug").level == logging.NOTSET


class TestFileOutput:
    def test_file_gets_its_own_level(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "emap.log"
        setup_logging(env={"EMAP_LOG_FILE": str(log_file), "EMAP_LOG_FILE_LEVEL": "DEBUG"})

        logging.getLogger("emap.test").debug("detail for the file")
        for h in logging.getLogger().handlers:
            h.flush()

        assert logging.getLogger().level == logging.DEBUG
        assert "detail for the file" in log_file.read_text()

    def test_no_file_by_default(self, tmp_path: Path):
        setup_logging(env={})
        assert not any(isinstance(h, logging.FileHandler) for h in logging.getLogger().handlers)
