"""Integration tests for the example extcap program."""

import subprocess
import sys
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from pyextcap.example.descriptors import (
    CONFIG_FAKE_IP,
    CONTROL_BUTTON,
    CONTROL_DELAY,
    CONTROL_LOGGER,
)
from pyextcap.example.main import DemoCapture, DemoState, main
from pyextcap.models import ControlCommand, ControlPacket
from pyextcap.sentences import parse_lines


@pytest.fixture
def runner():
    return CliRunner()


class TestExampleNegotiation:
    """Tests for the example's negotiation output."""

    def test_interfaces(self, runner):
        """Test metadata, interfaces and toolbar controls."""
        result = runner.invoke(main, ["--extcap-interfaces"])

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0] == (
            "extcap {version=0.1.0}{help=http://www.wireshark.org}"
            "{display=Python example extcap interface}"
        )
        assert lines[1] == "interface {value=py-example1}{display=Python example interface 1 for extcap}"
        assert lines[2] == "interface {value=py-example2}{display=Python example interface 2 for extcap}"
        assert lines[3] == "interface {value=py-sniff}{display=Python live capture (Scapy)}"
        assert "value {control=1}{value=5}{display=5s}{default=true}" in lines
        assert "control {number=6}{type=button}{role=logger}{display=Log}{tooltip=Show capture log}" in lines
        assert [s.tag for s in parse_lines(result.output)].count("control") == 7

    def test_dlts(self, runner):
        """Test the demo interfaces use the user DLTs."""
        result = runner.invoke(main, ["--extcap-dlts", "--extcap-interface", "py-example1"])

        assert result.exit_code == 0
        assert result.output == "dlt {number=147}{name=USER0}{display=Demo Implementation for Extcap}\n"

    def test_config(self, runner):
        """Test every demo option is listed in argument order."""
        result = runner.invoke(main, ["--extcap-config", "--extcap-interface", "py-example1"])

        assert result.exit_code == 0
        sentences = parse_lines(result.output)
        args = [s for s in sentences if s.tag == "arg"]
        assert [int(s.get("number")) for s in args] == list(range(13))
        assert result.output.splitlines()[0] == (
            "arg {number=0}{call=--delay}{display=Time delay}{type=integer}"
            "{default=5}{tooltip=Time delay between packages}{range=1,15}"
        )
        fake_ip = next(s for s in args if s.get("call") == "--fake_ip")
        assert fake_ip.get("validation") == CONFIG_FAKE_IP.validation
        values = [s for s in sentences if s.tag == "value" and s.get("arg") == "12"]
        assert [v.get("parent") for v in values[:3]] == [None, "m1", "m1c1"]

    def test_reload(self, runner):
        """Test the remote selector reloads four interfaces."""
        result = runner.invoke(main, [
            "--extcap-config", "--extcap-interface", "py-example1",
            "--extcap-reload-option", "remote",
        ])

        assert result.exit_code == 0
        assert result.output.splitlines() == [
            "value {arg=3}{value=if1}{display=Remote Interface 1}{default=false}",
            "value {arg=3}{value=if2}{display=Remote Interface 2}{default=true}",
            "value {arg=3}{value=if3}{display=Remote Interface 3}{default=false}",
            "value {arg=3}{value=if4}{display=Remote Interface 4}{default=false}",
        ]

    def test_reload_local_interfaces(self, runner):
        """Test the sniff interface lists the local interfaces."""
        with patch("pyextcap.example.descriptors.local_interfaces", return_value=["lo", "eth0"]):
            result = runner.invoke(main, [
                "--extcap-interface", "py-sniff", "--extcap-reload-option", "sniff_iface",
            ])

        assert result.exit_code == 0
        assert result.output.splitlines() == [
            "value {arg=0}{value=lo}{display=lo}{default=false}",
            "value {arg=0}{value=eth0}{display=eth0}{default=false}",
        ]

    @pytest.mark.parametrize("capture_filter, output", [
        ("filter", ""),
        ("valid", ""),
        ("tcp port 80", "Illegal capture filter\n"),
    ])
    def test_capture_filter_validation(self, runner, capture_filter, output):
        """Test only the demo's two accepted filters validate."""
        result = runner.invoke(main, [
            "--extcap-interface", "py-example1", "--extcap-capture-filter", capture_filter,
        ])

        assert result.exit_code == 0
        assert result.output == output

    def test_help_explains_installation(self, runner):
        """Test --help tells people how to install the program into Wireshark."""
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "mkdir -p ~/.config/wireshark/extcap" in result.output
        assert "ln -s" in result.output

    def test_negotiation_does_not_load_scapy(self):
        """Test importing the program leaves Scapy unloaded until packets are built."""
        code = "import sys, pyextcap.example.main; print('scapy' in sys.modules)"
        result = subprocess.run(
            [sys.executable, "-c", code], capture_output=True, text=True, check=True,
        )

        assert result.stdout.strip() == "False"

    def test_invalid_fake_ip(self, runner, tmp_path):
        """Test the sender address is validated."""
        result = runner.invoke(main, [
            "--capture", "--extcap-interface", "py-example1",
            "--fifo", str(tmp_path / "fifo"), "--fake_ip", "300.1.1.1",
        ])

        assert result.exit_code == 2


class TestExampleCapture:
    """Tests for the demo capture."""

    @pytest.mark.parametrize("scheduler", ["thread", "async"])
    def test_capture_three_packets(self, runner, tmp_path, scheduler):
        """Test --count stops the demo after three packets."""
        from scapy.layers.inet import IP
        from scapy.packet import Raw
        from scapy.utils import rdpcap

        fifo = tmp_path / "capture.pcap"

        result = runner.invoke(main, [
            "--capture", "--extcap-interface", "py-example1", "--fifo", str(fifo),
            "--count", "3", "--delay", "0", "--message", "Hi", "--scheduler", scheduler,
        ])

        assert result.exit_code == 0, result.output
        packets = rdpcap(str(fifo))
        assert len(packets) == 3
        assert all(p[IP].src == "127.0.0.1" and p[IP].proto == 254 for p in packets)
        payload = bytes(packets[0][Raw].load)
        assert payload.startswith(b"\x03if1\x01")
        assert payload.endswith(b"\x02Hi\x00")
        assert packets[0].src != packets[1].src


class TestDemoCapture:
    """Tests for the demo's control reactions."""

    def setup_method(self):
        """Fresh demo state."""
        self.demo = DemoCapture(DemoState(
            message="Extcap Test", delay=5, verify=False, remote="if1", fake_ip="127.0.0.1",
        ))

    def test_initialized_sends_defaults(self):
        """Test the toolbar is set up once the host is ready."""
        replies = self.demo.react(ControlPacket(255, ControlCommand.INITIALIZED))

        assert self.demo.state.initialized
        assert replies[0].control_number == CONTROL_LOGGER.control_number
        assert replies[0].known_command is ControlCommand.SET
        assert CONTROL_DELAY.add_value("15", "15 sec") in replies
        assert replies[-1] == CONTROL_DELAY.remove_value("60")

    def test_initialized_applies_button_state(self):
        """Test the button is put in its declared state once the host is ready."""
        replies = self.demo.react(ControlPacket(255, ControlCommand.INITIALIZED))

        assert CONTROL_BUTTON.enabled
        assert ControlPacket(3, ControlCommand.ENABLE) in replies
        assert ControlPacket(3, ControlCommand.DISABLE) not in replies

    def test_message_change(self):
        """Test a new message is stored and logged."""
        replies = self.demo.react(ControlPacket(0, ControlCommand.SET, b"Hello"))

        assert self.demo.state.message == "Hello"
        assert replies == [CONTROL_LOGGER.add_log("Message = Hello")]

    def test_delay_change(self):
        """Test the delay selector."""
        self.demo.react(ControlPacket(1, ControlCommand.SET, b"2"))

        assert self.demo.state.delay == 2

    def test_invalid_delay_is_ignored(self):
        """Test non-numeric delays leave the state alone."""
        assert self.demo.react(ControlPacket(1, ControlCommand.SET, b"soon")) == []
        assert self.demo.state.delay == 5

    def test_verify_before_initialized_is_ignored(self):
        """Test the checkbox is only read after initialization."""
        self.demo.react(ControlPacket(2, ControlCommand.SET, b"\x01"))

        assert self.demo.state.verify is False

    def test_verify_after_initialized(self):
        """Test the checkbox updates verify and the status bar."""
        self.demo.react(ControlPacket(255, ControlCommand.INITIALIZED))

        replies = self.demo.react(ControlPacket(2, ControlCommand.SET, b"\x01"))

        assert self.demo.state.verify is True
        assert replies[0] == ControlPacket(255, ControlCommand.STATUSBAR_MESSAGE, b"Verify changed")

    def test_button_toggles_label(self):
        """Test the button disables itself and flips its label."""
        replies = self.demo.react(ControlPacket(3, ControlCommand.SET))

        assert replies[0] == ControlPacket(3, ControlCommand.DISABLE)
        assert replies[1] == ControlPacket(3, ControlCommand.SET, b"Turn off")
        assert self.demo.state.button_disabled

    def test_unknown_command_is_ignored(self):
        """Test codes this version does not know are dropped."""
        assert self.demo.react(ControlPacket(0, 42, b"x")) == []
