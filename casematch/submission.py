"""Case submission: duplicate check, then commit."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

from casematch.matching.detector import DuplicateCaseDetector, DuplicateCheckResult
from casematch.models import CaseDraft, CaseRecord
from casematch.store import CaseRepository
from casematch.utils.logger import log_info


@dataclass
class SubmissionOutcome:
    """What happened to a submitted draft.

    ``case`` is set when the draft was stored. ``duplicate_check`` is always
    set so the reporter can see which existing cases looked similar.
    """

    accepted: bool
    duplicate_check: DuplicateCheckResult
    case: Optional[CaseRecord] = None


class CaseSubmissionService:
    """Gate new reports behind the duplicate check.

    Args:
        repository: Case store new reports are written to.
        detector: Duplicate detector; built from configuration when omitted.
        trait_extractor: Optional object with an async ``describe_image(uri)``
            (for example an ``LLMScoreProvider``). When set, a stored report
            with a photo and no traits gets them filled in from the photo.
    """

    def __init__(
        self,
        repository: CaseRepository,
        detector: Optional[DuplicateCaseDetector] = None,
        trait_extractor: Any = None,
    ):
        self.repository = repository
        self.detector = detector if detector is not None else DuplicateCaseDetector()
        self.trait_extractor = trait_extractor

    async def submit(
        self,
        draft: CaseDraft,
        reporter_id: Optional[int] = None,
        force: bool = False,
    ) -> SubmissionOutcome:
        """Validate a draft, check it for duplicates and store it.

        A likely duplicate is held back unless ``force`` is set (the reporter
        confirmed it is a different case).

        Raises:
            CaseValidationError: when the draft breaks the report form rules.
        """
        draft.validate_for_submission()

        check = await self.detector.check(
            draft, self.repository.list_recent(self.detector.candidate_limit)
        )
        if check.is_likely_duplicate and not force:
            log_info(
                "Submission held as likely duplicate",
                existing_case_id=check.best_match.case_id,
                score=round(check.best_match.score, 4),
            )
            return SubmissionOutcome(accepted=False, duplicate_check=check)

        draft = await self._with_traits(draft)
        record = self.repository.create(draft, reporter_id=reporter_id)
        return SubmissionOutcome(accepted=True, duplicate_check=check, case=record)

    async def _with_traits(self, draft: CaseDraft) -> CaseDraft:
        image_url = (draft.image_url or "").strip()
        if self.trait_extractor is None or not image_url or draft.physical_traits:
            return draft
        traits = await self.trait_extractor.describe_image(image_url)
        if not traits:
            return draft
        log_info("Physical traits extracted from photo", traits=sorted(traits))
        return draft.model_copy(update={"physical_traits": json.dumps(traits)})
