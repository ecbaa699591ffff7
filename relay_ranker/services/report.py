from pathlib import Path
from typing import List

from relay_ranker.models.ranking import HostScore, RankedResult

EXCLUDED_MARKER = "# excluded"


def format_entry(entry: HostScore) -> str:
    """Render one ranked relay as a single report line."""
    return f"{entry.hostname} {entry.score} failures={entry.failures}/{entry.probes}"


def format_top(result: RankedResult, k: int) -> List[str]:
    """
    Human-readable lines for the best k relays, numbered from 1.

    Relays with failed probes show the failure count next to the score.
    """
    lines = []
    for position, entry in enumerate(result.top_n(k), start=1):
        line = f"{position:>3}. {entry.hostname:<24} {entry.score:>6} ms"
        if entry.failures:
            line += f"  ({entry.failures}/{entry.probes} probes failed)"
        lines.append(line)
    return lines


def write_report(result: RankedResult, output_path: Path) -> None:
    """
    Write the full ranking to output_path, one relay per line, best first.

    Excluded relays are not ranked; they follow an EXCLUDED_MARKER line as
    comment lines.
    """
    lines = [format_entry(entry) for entry in result.full()]
    if result.diagnostics:
        lines.append(EXCLUDED_MARKER)
        lines.extend(
            f"# {d.hostname} {d.address}: {d.error}" for d in result.diagnostics
        )

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        "".join(f"{line}\n" for line in lines),
        encoding="utf-8",
    )
