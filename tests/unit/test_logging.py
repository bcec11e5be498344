"""Unit tests for agentsync logging configuration."""

import logging
import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from agentsync.logging import get_logger, setup_logging, truncate_output


@pytest.mark.unit
class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_creates_log_directory(self) -> None:
        """Log directory is created if it doesn't exist."""
        with tempfile.TemporaryDirectory() as tmpdir:
            log_dir = Path(tmpdir) / "nested" / "logs"
            setup_logging(log_dir=log_dir, console=False)

            assert log_dir.exists()

    def test_writes_to_log_file(self) -> None:
        """Log messages are written to the file with timestamp and component."""
        with tempfile.TemporaryDirectory() as tmpdir:
            setup_logging(log_dir=tmpdir, console=False)
            get_logger("artifacts.sync").info("sync message 123")

            content = (Path(tmpdir) / "agentsync.log").read_text()
            assert "sync message 123" in content
            assert " | INFO" in content
            assert " | agentsync.artifacts.sync | " in content

    def test_no_file_without_log_dir(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without a log directory only the console handler is installed."""
        monkeypatch.delenv("AGENTSYNC_LOG_DIR", raising=False)

        logger = setup_logging()

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.StreamHandler)
        assert not hasattr(logger.handlers[0], "maxBytes")

    def test_console_writes_to_stderr(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Console output stays off stdout, which carries JSON results."""
        monkeypatch.delenv("AGENTSYNC_LOG_DIR", raising=False)

        logger = setup_logging()

        assert logger.handlers[0].stream is sys.stderr

    def test_log_level_configurable(self) -> None:
        """Log level filters messages appropriately."""
        with tempfile.TemporaryDirectory() as tmpdir:
            setup_logging(log_dir=tmpdir, level="WARNING", console=False)
            logger = logging.getLogger("agentsync")
            logger.info("should not appear")
            logger.warning("should appear")

            content = (Path(tmpdir) / "agentsync.log").read_text()
            assert "should not appear" not in content
            assert "should appear" in content

    @patch.dict(os.environ, {"AGENTSYNC_LOG_LEVEL": "DEBUG"})
    def test_log_level_from_env(self) -> None:
        """Log level can be set via environment variable."""
        logger = setup_logging(console=False)

        assert logger.level == logging.DEBUG

    def test_log_dir_from_env(self) -> None:
        """Log directory can be set via environment variable."""
        with (
            tempfile.TemporaryDirectory() as tmpdir,
            patch.dict(os.environ, {"AGENTSYNC_LOG_DIR": tmpdir}),
        ):
            setup_logging(console=False)

            assert (Path(tmpdir) / "agentsync.log").exists()

    def test_no_duplicate_handlers_on_repeated_setup(self) -> None:
        """Repeated setup_logging calls don't add duplicate handlers."""
        with tempfile.TemporaryDirectory() as tmpdir:
            setup_logging(log_dir=tmpdir, console=False)
            setup_logging(log_dir=tmpdir, console=False)

            assert len(logging.getLogger("agentsync").handlers) == 1

    def test_rotation_configured(self) -> None:
        """RotatingFileHandler is configured with the given size and backups."""
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = setup_logging(log_dir=tmpdir, max_bytes=1024, backup_count=3, console=False)

            file_handler = logger.handlers[0]
            assert file_handler.maxBytes == 1024
            assert file_handler.backupCount == 3


@pytest.mark.unit
class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger_prefixes_agentsync(self) -> None:
        assert get_logger("monitor").name == "agentsync.monitor"

    def test_get_logger_no_double_prefix(self) -> None:
        assert get_logger("agentsync.release").name == "agentsync.release"


@pytest.mark.unit
class TestTruncateOutput:
    """Tests for truncate_output function."""

    def test_short_output_unchanged(self) -> None:
        assert truncate_output("short text", max_length=100) == "short text"

    def test_long_output_truncated(self) -> None:
        """Long output is truncated with indicator."""
        result = truncate_output("x" * 200, max_length=100)

        assert len(result) < 200
        assert "truncated" in result
        assert "100 more chars" in result
