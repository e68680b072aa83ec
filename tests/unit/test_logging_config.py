"""Unit tests for logging configuration."""

import logging

from pyextcap.logging_config import ExtcapFormatter, configure_logging


class TestExtcapFormatter:
    """Tests for ExtcapFormatter."""

    def setup_method(self):
        """Create a formatter."""
        self.formatter = ExtcapFormatter()

    def test_strips_package_prefix(self):
        """Test pyextcap.* loggers lose the package prefix."""
        assert self.formatter._get_short_name("pyextcap.controls.channel") == "controls.channel"

    def test_keeps_foreign_names(self):
        """Test other loggers are left alone."""
        assert self.formatter._get_short_name("scapy.runtime") == "scapy.runtime"

    def test_format(self):
        """Test the line layout."""
        record = logging.LogRecord(
            "pyextcap.capture.session", logging.WARNING, __file__, 1, "hello %s", ("there",), None
        )

        line = self.formatter.format(record)

        assert line.endswith("[WARNING][capture.session] hello there")
        assert line.startswith("[")


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_default_level(self):
        """Test only warnings are logged without --debug."""
        configure_logging()

        assert logging.getLogger().level == logging.WARNING

    def test_debug_level(self):
        """Test --debug switches to DEBUG."""
        configure_logging(debug=True)

        assert logging.getLogger().level == logging.DEBUG

    def test_no_duplicate_handlers(self):
        """Test repeated calls replace the handlers."""
        configure_logging()
        configure_logging()

        assert len(logging.getLogger().handlers) == 1

    def test_debug_file(self, tmp_path):
        """Test --debug-file mirrors the log into a file."""
        path = tmp_path / "extcap.log"
        configure_logging(debug_file=str(path))

        logging.getLogger("pyextcap.steps").debug("resolved")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "[DEBUG][steps] resolved" in path.read_text(encoding="utf-8")
