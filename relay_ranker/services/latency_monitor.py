import logging
from typing import Optional

from relay_ranker.config import Settings, get_settings
from relay_ranker.models.ranking import RankedResult
from relay_ranker.services.catalog import fetch_relays, filter_relays
from relay_ranker.services.fleet_prober import probe_fleet
from relay_ranker.services.ranker import rank_scores
from relay_ranker.services.transport import PingTransport, ProbeTransport

_LOG = logging.getLogger(__name__)


async def get_ranking(
    settings: Optional[Settings] = None,
    transport: Optional[ProbeTransport] = None,
) -> RankedResult:
    """
    Run one complete ranking: fetch the catalog, filter it, probe every
    remaining relay and rank the scores.

    Settings default to get_settings(); the transport defaults to the system
    ping. CatalogError propagates before any probe is sent.
    """
    settings = settings or get_settings()
    transport = transport or PingTransport(timeout_seconds=settings.probe_timeout_seconds)

    relays = await fetch_relays(
        settings.catalog_url,
        timeout_seconds=settings.catalog_timeout_seconds,
    )
    candidates = filter_relays(
        relays,
        relay_type=settings.relay_type,
        active_only=not settings.include_inactive,
    )
    _LOG.info(
        "probing %d of %d relays (type=%s, %d probes each)",
        len(candidates),
        len(relays),
        settings.relay_type,
        settings.probe_count,
    )

    outcome = await probe_fleet(
        candidates,
        transport,
        settings.probe_count,
        failure_sentinel_ms=settings.failure_sentinel_ms,
        max_rtt_ms=settings.max_rtt_ms,
        max_concurrency=settings.max_concurrency,
        abort_on_invalid_address=settings.abort_on_invalid_address,
    )
    return rank_scores(outcome.scores, outcome.diagnostics)
