"""
Live capture: session state machine, cancellation and packet record output.
"""

from .cancel import CancellationToken, install_signal_handlers

__all__ = [
    'CancellationToken',
    'install_signal_handlers',
    'AsyncCaptureSession',
    'CaptureSession',
    'SessionOutcome',
    'SessionState',
    'PcapWriter',
]

_LAZY = {
    'AsyncCaptureSession': 'session',
    'CaptureSession': 'session',
    'SessionOutcome': 'session',
    'SessionState': 'session',
    'PcapWriter': 'pcap_writer',
}


def __getattr__(name):
    """Lazy import; the session imports the control channel, which imports this package."""
    if name in _LAZY:
        from importlib import import_module
        module = import_module(f".{_LAZY[name]}", __name__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
