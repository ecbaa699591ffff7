import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from relay_ranker.config import DEFAULT_FAILURE_SENTINEL_MS
from relay_ranker.models.ranking import HostScore, ProbeDiagnostic
from relay_ranker.models.relay import Relay
from relay_ranker.services.host_prober import (
    DEFAULT_MAX_RTT_MS,
    InvalidAddressError,
    check_probe_parameters,
    probe_host,
)
from relay_ranker.services.transport import ProbeTransport

_LOG = logging.getLogger(__name__)


@dataclass
class FleetOutcome:
    """Unordered per-relay results of one probing run."""

    scores: List[HostScore] = field(default_factory=list)
    diagnostics: List[ProbeDiagnostic] = field(default_factory=list)


async def _probe_guarded(
    relay: Relay,
    transport: ProbeTransport,
    count: int,
    failure_sentinel_ms: int,
    max_rtt_ms: int,
    semaphore: Optional[asyncio.Semaphore],
) -> Tuple[Relay, Union[HostScore, InvalidAddressError]]:
    try:
        if semaphore is None:
            score = await probe_host(
                relay, transport, count, failure_sentinel_ms, max_rtt_ms
            )
        else:
            async with semaphore:
                score = await probe_host(
                    relay, transport, count, failure_sentinel_ms, max_rtt_ms
                )
    except InvalidAddressError as exc:
        return relay, exc
    return relay, score


async def probe_fleet(
    relays: Sequence[Relay],
    transport: ProbeTransport,
    count: int,
    failure_sentinel_ms: int = DEFAULT_FAILURE_SENTINEL_MS,
    max_rtt_ms: int = DEFAULT_MAX_RTT_MS,
    max_concurrency: Optional[int] = None,
    abort_on_invalid_address: bool = False,
) -> FleetOutcome:
    """
    Probe every relay concurrently and collect one result per relay.

    Results are gathered in completion order by this coroutine alone, so the
    returned scores carry no ordering. A relay with an invalid address is
    excluded and reported in diagnostics, or, with abort_on_invalid_address,
    cancels the remaining work and re-raises InvalidAddressError. Cancelled
    probes are awaited before the error propagates, so an abort returns no
    earlier than the in-flight transports give up (one probe timeout for
    PingTransport, which kills its ping process on cancellation).

    len(scores) + len(diagnostics) == len(relays) on return.
    """
    check_probe_parameters(count, failure_sentinel_ms, max_rtt_ms)
    if max_concurrency is not None and max_concurrency < 1:
        raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")

    outcome = FleetOutcome()
    if not relays:
        return outcome

    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None
    tasks = [
        asyncio.ensure_future(
            _probe_guarded(
                relay, transport, count, failure_sentinel_ms, max_rtt_ms, semaphore
            )
        )
        for relay in relays
    ]

    try:
        for next_done in asyncio.as_completed(tasks):
            relay, result = await next_done
            if isinstance(result, InvalidAddressError):
                if abort_on_invalid_address:
                    _LOG.error("aborting run: %s", result)
                    raise result
                _LOG.warning("excluding relay %s: %s", relay.hostname, result)
                outcome.diagnostics.append(
                    ProbeDiagnostic(
                        hostname=relay.hostname,
                        address=relay.ipv4_addr_in,
                        error=str(result),
                    )
                )
                continue
            outcome.scores.append(result)
    finally:
        pending = [t for t in tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    _LOG.info(
        "probed %d relays: %d scored, %d excluded",
        len(relays),
        len(outcome.scores),
        len(outcome.diagnostics),
    )
    return outcome
