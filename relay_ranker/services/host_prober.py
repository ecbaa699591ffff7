import asyncio
import ipaddress
import logging
from typing import Sequence

from relay_ranker.config import (
    DEFAULT_FAILURE_SENTINEL_MS,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
    MAX_PLAUSIBLE_RTT_MS,
    penalty_dominates,
    timeout_to_ms,
)
from relay_ranker.models.ranking import HostScore, ProbeOutcome
from relay_ranker.models.relay import Relay
from relay_ranker.services.transport import ProbeTransport

_LOG = logging.getLogger(__name__)

DEFAULT_MAX_RTT_MS = timeout_to_ms(DEFAULT_PROBE_TIMEOUT_SECONDS)


class InvalidAddressError(ValueError):
    """The relay's probe address is not a valid IP address."""

    def __init__(self, hostname: str, address: str):
        super().__init__(f"relay {hostname!r} has an invalid address: {address!r}")
        self.hostname = hostname
        self.address = address


def parse_address(relay: Relay) -> str:
    """Return the relay's address in normalised form or raise InvalidAddressError."""
    try:
        return str(ipaddress.ip_address(relay.ipv4_addr_in.strip()))
    except ValueError as exc:
        raise InvalidAddressError(relay.hostname, relay.ipv4_addr_in) from exc


def reduce_outcomes(
    hostname: str,
    address: str,
    outcomes: Sequence[ProbeOutcome],
    failure_sentinel_ms: int = DEFAULT_FAILURE_SENTINEL_MS,
) -> HostScore:
    """
    Fold the probe outcomes of one relay into a HostScore.

    score = floor((sum of successful RTTs + failures * sentinel) / probes).
    Failures and the success-only average are kept as separate fields.
    """
    if not outcomes:
        raise ValueError("at least one probe outcome is required")

    rtts = [o.rtt_ms for o in outcomes if o.succeeded]
    failures = len(outcomes) - len(rtts)
    total = sum(rtts) + failures * failure_sentinel_ms

    return HostScore(
        hostname=hostname,
        address=address,
        score=total // len(outcomes),
        probes=len(outcomes),
        failures=failures,
        success_average=(sum(rtts) / len(rtts)) if rtts else None,
    )


def check_probe_parameters(count: int, failure_sentinel_ms: int, max_rtt_ms: int) -> None:
    """
    Raise ValueError unless a failed probe is guaranteed to cost more than
    any reply that arrives within max_rtt_ms.
    """
    if count < 1:
        raise ValueError(f"probe count must be at least 1, got {count}")
    if max_rtt_ms < 0:
        raise ValueError(f"max_rtt_ms must not be negative, got {max_rtt_ms}")
    if failure_sentinel_ms <= MAX_PLAUSIBLE_RTT_MS:
        raise ValueError(
            f"failure sentinel {failure_sentinel_ms} ms must exceed "
            f"{MAX_PLAUSIBLE_RTT_MS} ms"
        )
    if not penalty_dominates(failure_sentinel_ms, count, max_rtt_ms):
        raise ValueError(
            f"failure sentinel {failure_sentinel_ms} ms spread over {count} probes "
            f"does not exceed the largest accepted RTT of {max_rtt_ms} ms"
        )


async def _probe_once(
    transport: ProbeTransport, hostname: str, address: str, max_rtt_ms: int
) -> ProbeOutcome:
    try:
        outcome = await transport.probe(address)
    except Exception as exc:
        # a raising transport fails this probe only
        outcome = ProbeOutcome(error=f"transport error: {exc}")

    if outcome.succeeded and outcome.rtt_ms > max_rtt_ms:
        outcome = ProbeOutcome(
            error=f"reply after {outcome.rtt_ms} ms exceeds the {max_rtt_ms} ms limit"
        )

    if not outcome.succeeded:
        _LOG.debug("probe to %s (%s) failed: %s", hostname, address, outcome.error)
    return outcome


async def probe_host(
    relay: Relay,
    transport: ProbeTransport,
    count: int,
    failure_sentinel_ms: int = DEFAULT_FAILURE_SENTINEL_MS,
    max_rtt_ms: int = DEFAULT_MAX_RTT_MS,
) -> HostScore:
    """
    Send `count` probes to one relay concurrently and return its HostScore.

    Replies slower than max_rtt_ms count as failed probes, so a relay with
    a single failure always scores worse than one without any.

    An unparseable address raises InvalidAddressError before any probe is
    sent. Failed probes never raise; they are scored with the sentinel.
    """
    check_probe_parameters(count, failure_sentinel_ms, max_rtt_ms)

    address = parse_address(relay)
    outcomes = await asyncio.gather(
        *(
            _probe_once(transport, relay.hostname, address, max_rtt_ms)
            for _ in range(count)
        )
    )
    return reduce_outcomes(relay.hostname, address, outcomes, failure_sentinel_ms)
