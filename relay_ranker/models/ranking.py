from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProbeOutcome(BaseModel):
    """Result of a single echo probe: a round-trip time or an error."""

    model_config = ConfigDict(frozen=True)

    rtt_ms: Optional[int] = Field(
        None,
        ge=0,
        description="Round-trip time in milliseconds, if a reply arrived.",
    )
    error: Optional[str] = Field(
        None,
        description="Why the probe failed (timeout, unreachable, transport error).",
    )

    @property
    def succeeded(self) -> bool:
        return self.rtt_ms is not None


class HostScore(BaseModel):
    """Aggregated latency score of one relay."""

    model_config = ConfigDict(frozen=True)

    hostname: str = Field(..., description="Relay hostname")
    address: str = Field(..., description="Address the probes were sent to")
    score: int = Field(
        ...,
        ge=0,
        description="Mean latency in ms, failed probes counted with the sentinel value",
    )
    probes: int = Field(..., ge=1, description="Number of probes sent")
    failures: int = Field(..., ge=0, description="Number of probes without a reply")
    success_average: Optional[float] = Field(
        None,
        ge=0.0,
        description="Mean RTT of the successful probes only; None if all failed.",
    )


class ProbeDiagnostic(BaseModel):
    """A relay that was excluded from the ranking, and why."""

    model_config = ConfigDict(frozen=True)

    hostname: str
    address: str
    error: str


class RankedResult(BaseModel):
    """
    Relays ordered by score, best (lowest) first.

    Relays that could not be probed at all are not ranked; they are listed in
    diagnostics instead.
    """

    entries: List[HostScore] = Field(default_factory=list)
    diagnostics: List[ProbeDiagnostic] = Field(default_factory=list)

    def top_n(self, k: int) -> List[HostScore]:
        if k <= 0:
            return []
        return list(self.entries[:k])

    def full(self) -> List[HostScore]:
        return list(self.entries)
