"""Fuzzy ranking of free text against candidate labels.

Scores are rapidfuzz ratios on case-folded text (0-100). Only identical
strings score 100, so an exact match always beats a partial one. Ties at
the best score are all kept; callers decide what a tie means.

The default cutoff of 80 keeps short tokens from matching longer labels
they merely overlap: "45" scores about 57 against "45+45" and is dropped,
so a league is only picked up from text through its name or an alias.
"""

from dataclasses import dataclass
from typing import Iterable, List, Sequence

from rapidfuzz import fuzz, process

DEFAULT_SCORE_CUTOFF = 80.0


@dataclass(frozen=True)
class FuzzyResult:
    value: str
    score: float


def _casefold(s: str) -> str:
    return s.casefold().strip()


def rank(query: str, candidates: Sequence[str], score_cutoff: float = DEFAULT_SCORE_CUTOFF) -> List[FuzzyResult]:
    """Score ``query`` against every candidate, best first, dropping those below the cutoff."""
    if not query or not candidates:
        return []
    extracted = process.extract(
        query,
        list(candidates),
        scorer=fuzz.ratio,
        processor=_casefold,
        score_cutoff=score_cutoff,
        limit=None,
    )
    # (choice, score, index); index keeps duplicate labels apart and the sort stable
    extracted.sort(key=lambda r: (-r[1], r[2]))
    return [FuzzyResult(value=choice, score=score) for choice, score, _ in extracted]


def best_matches(results: Iterable[FuzzyResult]) -> List[FuzzyResult]:
    """Every result whose score equals the maximum observed. Never breaks ties."""
    results = list(results)
    if not results:
        return []
    top = max(r.score for r in results)
    return [r for r in results if r.score == top]
