"""Tests for probe strategies."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from host_sweep._types import ProbeMethod, ProbeStatus
from host_sweep.probes import IcmpProber, TcpConnectProber, create_prober, ping_arguments


class FakeProcess:
    """Stand-in for asyncio.subprocess.Process."""

    def __init__(self, returncode: int = 0, delay: float = 0.0):
        self.returncode = None
        self._result = returncode
        self._delay = delay
        self.killed = False

    async def wait(self) -> int:
        if self.returncode is None:
            await asyncio.sleep(self._delay)
            self.returncode = self._result
        return self.returncode

    def kill(self) -> None:
        self.killed = True
        self.returncode = -9


def fake_writer():
    writer = MagicMock()
    writer.wait_closed = AsyncMock()
    return writer


class TestPingArguments:
    """Tests for platform-specific ping arguments."""

    def test_linux_uses_whole_seconds(self):
        assert ping_arguments("10.0.0.1", 2, platform="linux") == ["-c", "1", "-W", "2", "10.0.0.1"]

    def test_linux_rounds_fractional_timeout_up(self):
        assert ping_arguments("10.0.0.1", 0.3, platform="linux")[3] == "1"
        assert ping_arguments("10.0.0.1", 1.5, platform="linux")[3] == "2"

    def test_macos_uses_milliseconds(self):
        assert ping_arguments("10.0.0.1", 2, platform="darwin") == ["-c", "1", "-W", "2000", "10.0.0.1"]

    def test_windows(self):
        assert ping_arguments("10.0.0.1", 1, platform="win32") == ["-n", "1", "-w", "1000", "10.0.0.1"]


class TestIcmpProber:
    """Tests for the ICMP prober."""

    @pytest.mark.asyncio
    async def test_reply_is_active_with_latency(self):
        process = FakeProcess(returncode=0)
        spawn = AsyncMock(return_value=process)

        with patch("host_sweep.probes.icmp.asyncio.create_subprocess_exec", spawn):
            outcome = await IcmpProber().probe("10.0.0.1", timeout=1.0)

        assert outcome.status == ProbeStatus.ACTIVE
        assert outcome.method == ProbeMethod.ICMP
        assert outcome.latency_ms is not None
        assert outcome.latency_ms >= 0
        args = spawn.call_args.args
        assert args[0] == "ping"
        assert args[-1] == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_no_reply_is_inactive(self):
        spawn = AsyncMock(return_value=FakeProcess(returncode=1))

        with patch("host_sweep.probes.icmp.asyncio.create_subprocess_exec", spawn):
            outcome = await IcmpProber().probe("10.0.0.1", timeout=1.0)

        assert outcome.status == ProbeStatus.INACTIVE
        assert outcome.latency_ms is None

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        """A ping still running at the deadline is killed and reaped."""
        process = FakeProcess(returncode=0, delay=5.0)
        spawn = AsyncMock(return_value=process)

        with patch("host_sweep.probes.icmp.asyncio.create_subprocess_exec", spawn):
            outcome = await IcmpProber().probe("10.0.0.1", timeout=0.05)

        assert outcome.status == ProbeStatus.INACTIVE
        assert process.killed is True

    @pytest.mark.asyncio
    async def test_cancellation_kills_process(self):
        process = FakeProcess(returncode=0, delay=5.0)
        spawn = AsyncMock(return_value=process)

        with patch("host_sweep.probes.icmp.asyncio.create_subprocess_exec", spawn):
            task = asyncio.create_task(IcmpProber().probe("10.0.0.1", timeout=10))
            await asyncio.sleep(0.02)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert process.killed is True

    @pytest.mark.asyncio
    async def test_missing_binary_is_inactive(self):
        spawn = AsyncMock(side_effect=FileNotFoundError("ping"))

        with patch("host_sweep.probes.icmp.asyncio.create_subprocess_exec", spawn):
            outcome = await IcmpProber(ping_binary="no-such-ping").probe("10.0.0.1", timeout=1)

        assert outcome.status == ProbeStatus.INACTIVE

    @pytest.mark.asyncio
    async def test_custom_binary(self):
        spawn = AsyncMock(return_value=FakeProcess(returncode=0))

        with patch("host_sweep.probes.icmp.asyncio.create_subprocess_exec", spawn):
            await IcmpProber(ping_binary="/usr/bin/ping").probe("10.0.0.1", timeout=1)

        assert spawn.call_args.args[0] == "/usr/bin/ping"

    @pytest.mark.asyncio
    async def test_is_available(self):
        spawn = AsyncMock(return_value=FakeProcess(returncode=0))

        with patch("host_sweep.probes.icmp.asyncio.create_subprocess_exec", spawn):
            assert await IcmpProber().is_available() is True

        assert spawn.call_args.args[:2] == ("which", "ping")

    @pytest.mark.asyncio
    async def test_not_available(self):
        with patch(
            "host_sweep.probes.icmp.asyncio.create_subprocess_exec",
            AsyncMock(return_value=FakeProcess(returncode=1)),
        ):
            assert await IcmpProber().is_available() is False

        with patch(
            "host_sweep.probes.icmp.asyncio.create_subprocess_exec",
            AsyncMock(side_effect=FileNotFoundError("which")),
        ):
            assert await IcmpProber().is_available() is False


class TestTcpConnectProber:
    """Tests for the TCP connect prober."""

    @pytest.mark.asyncio
    async def test_handshake_is_active(self):
        writer = fake_writer()
        connect = AsyncMock(return_value=(MagicMock(), writer))

        with patch("host_sweep.probes.tcp.asyncio.open_connection", connect):
            outcome = await TcpConnectProber(port=443).probe("10.0.0.1", timeout=1)

        assert outcome.status == ProbeStatus.ACTIVE
        assert outcome.method == ProbeMethod.TCP
        connect.assert_called_once_with("10.0.0.1", 443)
        writer.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_refused_counts_as_active(self):
        connect = AsyncMock(side_effect=ConnectionRefusedError())

        with patch("host_sweep.probes.tcp.asyncio.open_connection", connect):
            outcome = await TcpConnectProber().probe("10.0.0.1", timeout=1)

        assert outcome.status == ProbeStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_refused_can_be_treated_as_inactive(self):
        connect = AsyncMock(side_effect=ConnectionRefusedError())

        with patch("host_sweep.probes.tcp.asyncio.open_connection", connect):
            outcome = await TcpConnectProber(refused_is_active=False).probe("10.0.0.1", timeout=1)

        assert outcome.status == ProbeStatus.INACTIVE

    @pytest.mark.asyncio
    async def test_unreachable_is_inactive(self):
        connect = AsyncMock(side_effect=OSError(113, "No route to host"))

        with patch("host_sweep.probes.tcp.asyncio.open_connection", connect):
            outcome = await TcpConnectProber().probe("10.0.0.1", timeout=1)

        assert outcome.status == ProbeStatus.INACTIVE
        assert outcome.latency_ms is None

    @pytest.mark.asyncio
    async def test_timeout_is_inactive(self):
        async def hang(*args, **kwargs):
            await asyncio.sleep(5)

        with patch("host_sweep.probes.tcp.asyncio.open_connection", hang):
            outcome = await TcpConnectProber().probe("10.0.0.1", timeout=0.05)

        assert outcome.status == ProbeStatus.INACTIVE

    def test_invalid_port_rejected(self):
        with pytest.raises(ValueError):
            TcpConnectProber(port=0)


class TestCreateProber:
    """Tests for the strategy factory."""

    def test_icmp(self):
        prober = create_prober("icmp", ping_binary="ping6")
        assert isinstance(prober, IcmpProber)
        assert prober.ping_binary == "ping6"

    def test_tcp(self):
        prober = create_prober(ProbeMethod.TCP, tcp_port=22)
        assert isinstance(prober, TcpConnectProber)
        assert prober.port == 22

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            create_prober("udp")
