"""Run the duplicate check for a new submission.

The ``DuplicateCaseDetector`` compares a draft against the most recent
stored cases and ranks them. The decision threshold is a policy knob; the
raw scores of every candidate are always returned so the reporter can be
shown what looked similar.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from casematch.config import get_config
from casematch.matching.matcher import CaseLike, DuplicateCaseMatcher
from casematch.matching.result import MatchResult
from casematch.models import CaseRecord
from casematch.utils.logger import log_debug, log_info


@dataclass(frozen=True)
class CaseMatch:
    """One stored case and how similar the draft is to it."""

    case_id: int
    child_name: str
    result: MatchResult

    @property
    def score(self) -> float:
        return self.result.overall_similarity


@dataclass
class DuplicateCheckResult:
    """Result of checking a draft against stored cases.

    Attributes:
        is_likely_duplicate: Best score reached ``threshold``.
        threshold: Overall similarity that flags a likely duplicate.
        matches: Every compared case, best first.
        candidates_checked: Number of stored cases compared.
    """

    is_likely_duplicate: bool
    threshold: float
    matches: List[CaseMatch] = field(default_factory=list)
    candidates_checked: int = 0

    @property
    def best_match(self) -> Optional[CaseMatch]:
        return self.matches[0] if self.matches else None

    def likely_duplicates(self) -> List[CaseMatch]:
        return [m for m in self.matches if m.score >= self.threshold]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isLikelyDuplicate": self.is_likely_duplicate,
            "threshold": self.threshold,
            "candidatesChecked": self.candidates_checked,
            "matches": [
                {"caseId": m.case_id, "childName": m.child_name, **m.result.to_dict()}
                for m in self.matches
            ],
        }


def select_candidates(cases: Sequence[CaseRecord], limit: int) -> List[CaseRecord]:
    """Most recent ``limit`` cases by creation time (``0`` keeps all)."""
    ordered = sorted(cases, key=lambda c: (c.created_at, c.id), reverse=True)
    return ordered if limit <= 0 else ordered[:limit]


class DuplicateCaseDetector:
    """Compare a draft against recent stored cases.

    Args:
        matcher: Pairwise matcher. Defaults to ``DuplicateCaseMatcher()``.
        threshold: Likely-duplicate threshold; defaults to configuration.
        candidate_limit: Recent cases to consider (0 = all).
        max_concurrent: Comparisons allowed in flight at once.
    """

    def __init__(
        self,
        matcher: Optional[DuplicateCaseMatcher] = None,
        threshold: Optional[float] = None,
        candidate_limit: Optional[int] = None,
        max_concurrent: Optional[int] = None,
    ):
        config = get_config()
        self.matcher = matcher if matcher is not None else DuplicateCaseMatcher()
        self.threshold = (
            threshold if threshold is not None else config.duplicate_similarity_threshold
        )
        self.candidate_limit = (
            candidate_limit if candidate_limit is not None else config.duplicate_candidate_limit
        )
        self.max_concurrent = max_concurrent or config.duplicate_max_concurrent

    async def check(self, draft: CaseLike, existing_cases: Sequence[CaseRecord]) -> DuplicateCheckResult:
        candidates = select_candidates(existing_cases, self.candidate_limit)
        log_debug(
            "Starting duplicate check",
            candidates=len(candidates),
            threshold=self.threshold,
        )
        if not candidates:
            return DuplicateCheckResult(is_likely_duplicate=False, threshold=self.threshold)

        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def _compare(case: CaseRecord) -> CaseMatch:
            async with semaphore:
                result = await self.matcher.compare(draft, case)
            return CaseMatch(case_id=case.id, child_name=case.child_name, result=result)

        matches = await asyncio.gather(*(_compare(case) for case in candidates))
        ranked = sorted(matches, key=lambda m: m.score, reverse=True)

        best = ranked[0]
        is_duplicate = best.score >= self.threshold
        if is_duplicate:
            log_info(
                "Likely duplicate case detected",
                existing_case_id=best.case_id,
                score=round(best.score, 4),
                threshold=self.threshold,
            )
        else:
            log_debug("No likely duplicate found", best_score=round(best.score, 4))

        return DuplicateCheckResult(
            is_likely_duplicate=is_duplicate,
            threshold=self.threshold,
            matches=ranked,
            candidates_checked=len(candidates),
        )
