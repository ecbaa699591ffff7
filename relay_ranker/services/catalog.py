import logging
from typing import Iterable, List, Optional

import httpx
from pydantic import ValidationError

from relay_ranker.models.relay import Relay

_LOG = logging.getLogger(__name__)


class CatalogError(RuntimeError):
    """The relay catalog could not be fetched or decoded."""


async def fetch_relays(
    url: str,
    timeout_seconds: float = 10.0,
    client: Optional[httpx.AsyncClient] = None,
) -> List[Relay]:
    """
    Download the relay catalog and decode it into Relay records.

    The catalog is expected to be a JSON list of relay objects. Any HTTP,
    transport or decoding problem raises CatalogError; no partial list is
    returned.
    """
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=timeout_seconds)

    try:
        response = await client.get(url)
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPStatusError as exc:
        raise CatalogError(
            f"relay catalog request failed with status {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        raise CatalogError(f"relay catalog request failed: {exc}") from exc
    except ValueError as exc:
        raise CatalogError("relay catalog response is not valid JSON") from exc
    finally:
        if owns_client:
            await client.aclose()

    if not isinstance(payload, list):
        raise CatalogError(
            f"relay catalog must be a JSON list, got {type(payload).__name__}"
        )

    try:
        relays = [Relay.model_validate(item) for item in payload]
    except ValidationError as exc:
        raise CatalogError(f"relay catalog contains an invalid record: {exc}") from exc

    _LOG.info("fetched %d relays from %s", len(relays), url)
    return relays


def filter_relays(
    relays: Iterable[Relay],
    relay_type: Optional[str] = "wireguard",
    active_only: bool = True,
) -> List[Relay]:
    """Keep relays of the given type (None = any type), optionally only active ones."""
    return [
        relay
        for relay in relays
        if (relay_type is None or relay.relay_type == relay_type)
        and (relay.active or not active_only)
    ]
