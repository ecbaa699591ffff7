import asyncio
from abc import ABC, abstractmethod
from typing import Optional

from relay_ranker.config import timeout_to_ms
from relay_ranker.models.ranking import ProbeOutcome


class ProbeTransport(ABC):
    """Sends one echo probe to one address. Must be safe to call concurrently."""

    @abstractmethod
    async def probe(self, address: str) -> ProbeOutcome:
        """Probe address once and return the round-trip time or a failure."""
        raise NotImplementedError


def parse_ping_rtt(output: str) -> Optional[int]:
    """
    Extract the round-trip time from ping output, rounded to whole ms.

    Example line: "64 bytes from 192.168.178.1: icmp_seq=1 ttl=64 time=2.34 ms"
    """
    for line in output.splitlines():
        if "time=" in line and "ms" in line:
            try:
                segment = line.split("time=", 1)[1]
                value_str = segment.split("ms", 1)[0].strip()
                return max(0, round(float(value_str)))
            except (IndexError, ValueError):
                return None
    return None


class PingTransport(ProbeTransport):
    """
    Probe with the system 'ping' binary, one subprocess per probe.

    Assumes a Linux-like ping with -c <count> and -W <timeout seconds>.
    Nothing is shared between calls, so concurrent probes are safe. A reply
    slower than timeout_seconds counts as a failure even if ping waited
    longer for it; a cancelled probe kills its ping process.
    """

    def __init__(self, timeout_seconds: float = 1.0, ping_binary: str = "ping"):
        self.timeout_seconds = timeout_seconds
        self.ping_binary = ping_binary

    def _build_cmd(self, address: str) -> list:
        # ping -W only accepts whole seconds on some builds
        wait = max(1, int(round(self.timeout_seconds)))
        return [self.ping_binary, "-n", "-c", "1", "-W", str(wait), address]

    async def probe(self, address: str) -> ProbeOutcome:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._build_cmd(address),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError:
            return ProbeOutcome(error="ping binary not found on host system")

        try:
            stdout, _ = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
            raise

        if proc.returncode != 0:
            return ProbeOutcome(
                error=f"ping failed with return code {proc.returncode}",
            )

        rtt_ms = parse_ping_rtt(stdout.decode(errors="replace"))
        if rtt_ms is None:
            return ProbeOutcome(error="could not parse ping output")
        if rtt_ms > timeout_to_ms(self.timeout_seconds):
            return ProbeOutcome(error=f"reply after {rtt_ms} ms exceeded the timeout")
        return ProbeOutcome(rtt_ms=rtt_ms)
