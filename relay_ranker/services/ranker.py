from typing import Iterable

from relay_ranker.models.ranking import HostScore, ProbeDiagnostic, RankedResult


def _rank_key(entry: HostScore):
    # equal scores are ordered by hostname so repeated runs rank identically
    return entry.score, entry.hostname


def rank_scores(
    scores: Iterable[HostScore],
    diagnostics: Iterable[ProbeDiagnostic] = (),
) -> RankedResult:
    """Order scores ascending (best first); nothing is added or dropped."""
    return RankedResult(
        entries=sorted(scores, key=_rank_key),
        diagnostics=sorted(diagnostics, key=lambda d: d.hostname),
    )
