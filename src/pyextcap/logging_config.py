"""pyextcap logging configuration with custom formatter.

Standard output belongs to the host protocol, so every handler installed
here writes to stderr or to the file the host passes with --debug-file.

Log lines look like:
[YYYY-MM-DD HH:MM:SS][LEVEL][module.submodule] Message

Examples:
    pyextcap.controls.channel -> controls.channel
    pyextcap.capture.session -> capture.session
"""

import logging
import sys
from typing import Optional


class ExtcapFormatter(logging.Formatter):
    """Formatter that drops the package prefix from logger names."""

    PREFIX = 'pyextcap.'

    def __init__(
        self,
        fmt: str = '[%(asctime)s][%(levelname)s][%(shortname)s] %(message)s',
        datefmt: str = '%Y-%m-%d %H:%M:%S',
    ):
        super().__init__(fmt=fmt, datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        record.shortname = self._get_short_name(record.name)
        return super().format(record)

    def _get_short_name(self, name: str) -> str:
        """Transform full module path to short name.

        Args:
            name: Full Python module path (e.g., 'pyextcap.controls.channel')

        Returns:
            Short module name (e.g., 'controls.channel')
        """
        if name.startswith(self.PREFIX):
            name = name[len(self.PREFIX):]
        return name


def configure_logging(debug: bool = False, debug_file: Optional[str] = None) -> None:
    """Configure logging for one extcap invocation.

    Args:
        debug: Log at DEBUG level instead of WARNING.
        debug_file: Optional file to mirror log output into. Wireshark passes
            this with --debug-file when extcap debugging is enabled.
    """
    log_level = logging.DEBUG if debug else logging.WARNING
    formatter = ExtcapFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates on repeated invocations
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if debug_file:
        file_handler = logging.FileHandler(debug_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        root_logger.setLevel(logging.DEBUG)

    # scapy logs runtime warnings on import
    logging.getLogger('scapy').setLevel(logging.ERROR)
