"""Integration tests for the click glue: flags in, sentences and exit codes out."""

import os
import struct
import threading
from unittest.mock import patch

import click
import pytest
from click.testing import CliRunner

from pyextcap import ExtcapArgs, extcap_options, installation_instructions, run_extcap
from pyextcap.capture.pcap_writer import PcapWriter
from pyextcap.models import Interface, Metadata, build_context

CONTEXT = build_context(
    Metadata("1.0.0", "https://example.org/help"),
    [Interface("eth0", "Ethernet")],
)


def three_packets(ctx):
    writer = PcapWriter(ctx.dlt.data_link_type)
    return writer.records([(1.0, b"one"), (2.0, b"two"), (3.0, b"three")])


def endless_packets(ctx):
    writer = PcapWriter(ctx.dlt.data_link_type)
    yield writer.global_header()
    while not ctx.cancelled:
        yield writer.record(b"tick")
        ctx.wait(0.01)


@click.command()
@extcap_options
@click.option("--no-source", is_flag=True)
@click.option("--endless", is_flag=True)
def extcap(no_source, endless, **kwargs):
    args = ExtcapArgs.from_kwargs(kwargs)
    source = endless_packets if endless else three_packets
    run_extcap(CONTEXT, args, source=None if no_source else source, options=kwargs)


@pytest.fixture
def runner():
    return CliRunner()


class TestNegotiation:
    """Tests for the negotiation steps through the CLI."""

    def test_interfaces(self, runner):
        """Test a single interface yields exactly two lines."""
        result = runner.invoke(extcap, ["--extcap-interfaces"])

        assert result.exit_code == 0
        assert result.output == (
            "extcap {version=1.0.0}{help=https://example.org/help}\n"
            "interface {value=eth0}{display=Ethernet}\n"
        )

    def test_no_arguments_lists_interfaces(self, runner):
        """Test running without flags behaves like --extcap-interfaces."""
        result = runner.invoke(extcap, [])

        assert result.exit_code == 0
        assert result.output.startswith("extcap {version=1.0.0}")

    def test_host_version_flag(self, runner):
        """Test the host's --extcap-version is accepted."""
        result = runner.invoke(extcap, ["--extcap-interfaces", "--extcap-version=4.2"])

        assert result.exit_code == 0

    def test_dlts(self, runner):
        """Test the default DLT."""
        result = runner.invoke(extcap, ["--extcap-dlts", "--extcap-interface", "eth0"])

        assert result.exit_code == 0
        assert result.output == "dlt {number=1}{name=EN10MB}{display=Ethernet}\n"

    def test_unknown_interface_exit_code(self, runner):
        """Test unknown interfaces exit with 3 and print nothing on stdout."""
        result = runner.invoke(extcap, ["--extcap-dlts", "--extcap-interface", "wlan0"])

        assert result.exit_code == 3
        assert "dlt " not in result.output
        assert "Unknown interface" in result.output

    def test_conflicting_flags_exit_code(self, runner):
        """Test two steps at once exit with 2."""
        result = runner.invoke(extcap, [
            "--extcap-interfaces", "--extcap-dlts", "--extcap-interface", "eth0",
        ])

        assert result.exit_code == 2
        assert "Conflicting flags" in result.output

    def test_missing_interface_exit_code(self, runner):
        """Test a step missing its interface exits with 2."""
        result = runner.invoke(extcap, ["--extcap-config"])

        assert result.exit_code == 2
        assert "requires --extcap-interface" in result.output


class TestCapture:
    """Tests for --capture through the CLI."""

    def test_capture_to_file(self, runner, tmp_path):
        """Test records are written to the FIFO path and the run exits 0."""
        fifo = tmp_path / "capture.pcap"

        result = runner.invoke(extcap, [
            "--capture", "--extcap-interface", "eth0", "--fifo", str(fifo),
        ])

        assert result.exit_code == 0, result.output
        data = fifo.read_bytes()
        assert struct.unpack("=I", data[:4]) == (0xA1B2C3D4,)
        offset, payloads = 24, []
        while offset < len(data):
            _, _, captured, _ = struct.unpack("=IIII", data[offset:offset + 16])
            payloads.append(data[offset + 16:offset + 16 + captured])
            offset += 16 + captured
        assert payloads == [b"one", b"two", b"three"]

    def test_capture_with_async_scheduler(self, tmp_path):
        """Test the asyncio session produces the same file."""
        fifo = tmp_path / "capture.pcap"
        args = ExtcapArgs(capture=True, extcap_interface="eth0", fifo=str(fifo))

        run_extcap(CONTEXT, args, source=three_packets, scheduler="async")

        assert fifo.read_bytes().endswith(b"three")

    def test_capture_without_source(self, runner, tmp_path):
        """Test programs without a packet source reject --capture."""
        result = runner.invoke(extcap, [
            "--no-source", "--capture", "--extcap-interface", "eth0",
            "--fifo", str(tmp_path / "fifo"),
        ])

        assert result.exit_code == 2

    def test_fifo_io_error_exit_code(self, runner, tmp_path):
        """Test an unopenable FIFO exits with 4."""
        result = runner.invoke(extcap, [
            "--capture", "--extcap-interface", "eth0",
            "--fifo", str(tmp_path / "missing" / "fifo"),
        ])

        assert result.exit_code == 4

    def test_fifo_closed_by_host_exit_code(self, runner, tmp_path):
        """Test the host closing the FIFO mid-capture exits with 4."""
        fifo = str(tmp_path / "fifo")
        os.mkfifo(fifo)
        reader = os.open(fifo, os.O_RDONLY | os.O_NONBLOCK)
        threading.Timer(0.3, os.close, [reader]).start()

        result = runner.invoke(extcap, [
            "--endless", "--capture", "--extcap-interface", "eth0", "--fifo", fifo,
        ])

        assert result.exit_code == 4
        assert "Write failed" in result.output

    def test_fifo_without_capture(self, runner, tmp_path):
        """Test --fifo alone is a usage error."""
        result = runner.invoke(extcap, ["--fifo", str(tmp_path / "fifo")])

        assert result.exit_code == 2
        assert "only valid with --capture" in result.output

    def test_unknown_scheduler(self):
        """Test the scheduler name is validated."""
        with pytest.raises(click.BadParameter):
            run_extcap(CONTEXT, ExtcapArgs(), scheduler="fibers")


class TestDebugLogging:
    """Tests for --debug and --debug-file."""

    def test_debug_file(self, runner, tmp_path):
        """Test the invocation is logged into --debug-file."""
        log_file = tmp_path / "extcap.log"

        result = runner.invoke(extcap, [
            "--extcap-interfaces", "--debug-file", str(log_file),
        ])

        assert result.exit_code == 0
        assert "Resolved step InterfacesStep" in log_file.read_text(encoding="utf-8")


class TestInstallationInstructions:
    """Tests for installation_instructions()."""

    def test_links_installed_script(self):
        """Test the hint links the resolved executable into the extcap folder."""
        with patch("pyextcap.cli.shutil.which", return_value="/usr/local/bin/my-extcap"):
            text = installation_instructions("my-extcap")

        assert "Wireshark or tshark" in text
        assert (
            'ln -s "/usr/local/bin/my-extcap" ~/.config/wireshark/extcap/my-extcap'
        ) in text

    def test_unknown_program_uses_absolute_path(self, tmp_path, monkeypatch):
        """Test a program outside PATH is resolved against the working directory."""
        monkeypatch.chdir(tmp_path)
        with patch("pyextcap.cli.shutil.which", return_value=None):
            text = installation_instructions("extcap.py")

        assert '"' + os.path.join(os.getcwd(), "extcap.py") + '"' in text
