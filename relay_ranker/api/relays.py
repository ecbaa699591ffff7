from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from relay_ranker.config import get_settings
from relay_ranker.models.ranking import HostScore, RankedResult
from relay_ranker.services import latency_monitor
from relay_ranker.services.catalog import CatalogError
from relay_ranker.services.host_prober import InvalidAddressError

router = APIRouter()


async def _run_ranking() -> RankedResult:
    try:
        return await latency_monitor.get_ranking()
    except CatalogError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except InvalidAddressError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.get(
    "/ranking",
    response_model=List[HostScore],
    summary="Fastest relays",
)
async def relay_ranking(
    top: Optional[int] = Query(
        None,
        description="Number of relays to return (default: Settings.top_n)",
    ),
) -> List[HostScore]:
    """
    Probe all matching relays and return the best ones, lowest score first.

    If the relay catalog cannot be fetched, a HTTP 503 Service Unavailable is
    returned.
    """
    result = await _run_ranking()
    k = get_settings().top_n if top is None else top
    return result.top_n(k)


@router.get(
    "/ranking/full",
    response_model=RankedResult,
    summary="Full relay ranking",
)
async def relay_ranking_full() -> RankedResult:
    """Return every ranked relay plus the relays excluded from the ranking."""
    return await _run_ranking()
