# Custom exceptions

"""
Custom exceptions for pyextcap.

Every error carries the process exit code the host sees when the error ends
an invocation, so the CLI layer can map it without a lookup table.
"""


class ExtcapError(Exception):
    """Base exception for all extcap-related errors."""
    exit_code = 1


class UsageError(ExtcapError):
    """Raised when the host passes conflicting or missing flags."""
    exit_code = 2


class InvalidDescriptorError(UsageError):
    """Raised when an interface, config option or control is declared with
    a field combination the host grammar does not document."""
    pass


class UnknownInterfaceError(ExtcapError):
    """Raised when a step references an interface that was never registered."""
    exit_code = 3

    def __init__(self, interface: str):
        super().__init__(f"Unknown interface \"{interface}\"")
        self.interface = interface


class ParseError(ExtcapError):
    """Raised when a sentence (reload response, value list) is malformed."""
    pass


class FrameError(ExtcapError):
    """Raised when a control packet cannot be encoded or is invalid."""
    pass


class IoError(ExtcapError):
    """Raised when the FIFO or a control pipe cannot be opened or written."""
    exit_code = 4
