"""Pytest fixtures for pyextcap tests."""

import logging

import pytest

from pyextcap.models import (
    BooleanConfig,
    ConfigOptionValue,
    Interface,
    Metadata,
    Reload,
    SelectorConfig,
    build_context,
)


@pytest.fixture(autouse=True)
def reset_logging():
    """Restore the root logger after configure_logging replaced its handlers."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def metadata():
    """Metadata of the test extcap."""
    return Metadata(version="1.0.0", help_url="https://example.org/help")


@pytest.fixture
def eth_context(metadata):
    """Context with a single Ethernet interface and no controls.

    Returns:
        ExtcapContext: one interface "eth0"/"Ethernet"
    """
    return build_context(metadata, [Interface("eth0", "Ethernet")])


@pytest.fixture
def reload_context(metadata):
    """Context whose interface has a reloadable selector and a boolean flag."""
    remote = SelectorConfig(
        0, "remote", "Remote",
        reload=Reload("Load...", lambda: [
            ConfigOptionValue("a", "Alpha"),
            ConfigOptionValue("b", "Beta", default=True),
        ]),
        options=[ConfigOptionValue("a", "Alpha", default=True)],
    )
    verbose = BooleanConfig(1, "verbose", "Verbose")
    return build_context(
        metadata,
        [Interface("eth0", "Ethernet")],
        configs={"eth0": [remote, verbose]},
    )
