import math
from typing import Optional
from pydantic import BaseModel, Field, model_validator
import os
from functools import lru_cache

DEFAULT_CATALOG_URL = "https://api.mullvad.net/www/relays/all/"
DEFAULT_PROBE_COUNT = 4
DEFAULT_PROBE_TIMEOUT_SECONDS = 1.0
DEFAULT_FAILURE_SENTINEL_MS = 99999

# Floor for the failure sentinel: no real round trip takes a minute.
MAX_PLAUSIBLE_RTT_MS = 60_000

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def timeout_to_ms(timeout_seconds: float) -> int:
    """Largest RTT in ms a probe with this timeout can report."""
    return int(math.ceil(timeout_seconds * 1000))


def penalty_dominates(failure_sentinel_ms: int, probe_count: int, max_rtt_ms: int) -> bool:
    """
    True if a single failed probe out of probe_count scores worse than
    probe_count successful replies of max_rtt_ms each.

    A relay with one failure scores at least failure_sentinel_ms // probe_count,
    a relay without failures at most max_rtt_ms.
    """
    return failure_sentinel_ms // probe_count > max_rtt_ms


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    return default


class Settings(BaseModel):
    # Relay catalog
    catalog_url: str = Field(
        default=DEFAULT_CATALOG_URL,
        description="URL of the relay directory (JSON list of relay records)",
    )
    catalog_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for the catalog HTTP request",
    )
    relay_type: str = Field(
        default="wireguard",
        description="Only relays of this type are probed",
    )
    include_inactive: bool = Field(
        default=False,
        description="Also probe relays the catalog marks as inactive",
    )

    # Probing
    probe_count: int = Field(
        default=DEFAULT_PROBE_COUNT,
        ge=1,
        description="Number of echo probes sent to every relay",
    )
    probe_timeout_seconds: float = Field(
        default=DEFAULT_PROBE_TIMEOUT_SECONDS,
        gt=0,
        description="Per-probe reply timeout in seconds",
    )
    failure_sentinel_ms: int = Field(
        default=DEFAULT_FAILURE_SENTINEL_MS,
        gt=MAX_PLAUSIBLE_RTT_MS,
        description="Latency value substituted for a failed probe",
    )
    max_concurrency: Optional[int] = Field(
        default=None,
        ge=1,
        description="Upper bound for relays probed at the same time (None = unbounded)",
    )
    abort_on_invalid_address: bool = Field(
        default=False,
        description="Abort the whole run on a relay with an unparseable address",
    )

    # Output
    top_n: int = Field(
        default=10,
        ge=0,
        description="Number of relays shown in the top view",
    )
    report_path: Optional[str] = Field(
        default=None,
        description="Optional path the full ranking is written to",
    )

    @property
    def max_rtt_ms(self) -> int:
        return timeout_to_ms(self.probe_timeout_seconds)

    @model_validator(mode="after")
    def _check_penalty_dominance(self) -> "Settings":
        if not penalty_dominates(self.failure_sentinel_ms, self.probe_count, self.max_rtt_ms):
            raise ValueError(
                f"failure sentinel {self.failure_sentinel_ms} ms spread over "
                f"{self.probe_count} probes must exceed the probe timeout "
                f"of {self.max_rtt_ms} ms"
            )
        return self

    @classmethod
    def from_env(cls) -> "Settings":
        max_concurrency = _env_int("PROBE_MAX_CONCURRENCY", None)
        if max_concurrency is not None and max_concurrency < 1:
            max_concurrency = None

        probe_count = _env_int("PROBE_COUNT", DEFAULT_PROBE_COUNT)
        if probe_count < 1:
            probe_count = DEFAULT_PROBE_COUNT

        top_n = _env_int("RANKING_TOP_N", 10)
        if top_n < 0:
            top_n = 10

        catalog_timeout = _env_float("CATALOG_TIMEOUT_SECONDS", 10.0)
        if catalog_timeout <= 0:
            catalog_timeout = 10.0

        probe_timeout = _env_float("PROBE_TIMEOUT_SECONDS", DEFAULT_PROBE_TIMEOUT_SECONDS)
        if probe_timeout <= 0:
            probe_timeout = DEFAULT_PROBE_TIMEOUT_SECONDS

        failure_sentinel = _env_int("PROBE_FAILURE_SENTINEL_MS", DEFAULT_FAILURE_SENTINEL_MS)
        if failure_sentinel <= MAX_PLAUSIBLE_RTT_MS:
            failure_sentinel = DEFAULT_FAILURE_SENTINEL_MS

        # reset the probing values one at a time until a failed probe
        # outweighs a slowest possible reply again; the defaults always do
        if not penalty_dominates(failure_sentinel, probe_count, timeout_to_ms(probe_timeout)):
            failure_sentinel = DEFAULT_FAILURE_SENTINEL_MS
        if not penalty_dominates(failure_sentinel, probe_count, timeout_to_ms(probe_timeout)):
            probe_count = DEFAULT_PROBE_COUNT
        if not penalty_dominates(failure_sentinel, probe_count, timeout_to_ms(probe_timeout)):
            probe_timeout = DEFAULT_PROBE_TIMEOUT_SECONDS

        return cls(
            catalog_url=os.getenv("RELAY_CATALOG_URL") or DEFAULT_CATALOG_URL,
            catalog_timeout_seconds=catalog_timeout,
            relay_type=os.getenv("RELAY_TYPE") or "wireguard",
            include_inactive=_env_bool("RELAY_INCLUDE_INACTIVE", False),
            probe_count=probe_count,
            probe_timeout_seconds=probe_timeout,
            failure_sentinel_ms=failure_sentinel,
            max_concurrency=max_concurrency,
            abort_on_invalid_address=_env_bool("PROBE_ABORT_ON_INVALID_ADDRESS", False),
            top_n=top_n,
            report_path=os.getenv("REPORT_PATH") or None,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
