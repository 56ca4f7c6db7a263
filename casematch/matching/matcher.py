"""Compare a draft case report with one stored case.

``DuplicateCaseMatcher.compare`` runs three independent sub-comparisons
concurrently:

  1. contact info: deterministic, no I/O
  2. text: one call to the score provider
  3. images: only when both cases carry an image reference

and combines them with ``calculate_overall_similarity``. A failing
sub-comparison scores 0 and never aborts the others.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Union

from casematch.matching.contact import contact_outcome
from casematch.matching.providers import CaseText, LLMScoreProvider, ScoreProvider
from casematch.matching.result import MatchResult, ScoreOutcome
from casematch.matching.weighting import (
    MatchWeights,
    calculate_overall_similarity,
    select_weights,
    weights_from_config,
)
from casematch.models import CaseDraft, CaseRecord
from casematch.utils.logger import log_debug, log_error, log_match_result

CaseLike = Union[CaseDraft, CaseRecord]


class DuplicateCaseMatcher:
    """Produce a ``MatchResult`` for a (draft, stored case) pair.

    Args:
        provider: Source of text and image scores. Defaults to an
            ``LLMScoreProvider`` built from configuration.
        with_image: Weights used when both images were compared.
        without_image: Weights used when image evidence is missing.

    Usage::

        matcher = DuplicateCaseMatcher()
        result = await matcher.compare(draft, stored_case)
        if result.overall_similarity >= 0.8:
            # warn the reporter
            ...
    """

    def __init__(
        self,
        provider: Optional[ScoreProvider] = None,
        with_image: Optional[MatchWeights] = None,
        without_image: Optional[MatchWeights] = None,
    ):
        self.provider = provider if provider is not None else LLMScoreProvider()
        if with_image is None or without_image is None:
            configured_with, configured_without = weights_from_config()
            with_image = with_image or configured_with
            without_image = without_image or configured_without
        self.with_image = with_image
        self.without_image = without_image

    async def compare(self, new_case: CaseLike, existing_case: CaseRecord) -> MatchResult:
        """Score how similar ``new_case`` is to ``existing_case``."""
        log_debug(
            "Comparing cases",
            existing_case_id=existing_case.id,
            provider=self.provider.name,
        )

        contact = contact_outcome(new_case.contact_info, existing_case.contact_info)
        new_image = (new_case.image_url or "").strip()
        existing_image = (existing_case.image_url or "").strip()
        image_available = bool(new_image and existing_image)

        text_task = self._guard(
            "text",
            self.provider.score_text(
                CaseText(new_case.child_name, new_case.description),
                CaseText(existing_case.child_name, existing_case.description),
            ),
        )
        if image_available:
            image_task = self._guard(
                "image",
                self.provider.score_images(new_image, existing_image),
            )
            text, image = await asyncio.gather(text_task, image_task)
        else:
            text = await text_task
            image = ScoreOutcome.unavailable("image missing on at least one case")

        weights = select_weights(image_available, self.with_image, self.without_image)
        overall = calculate_overall_similarity(
            text.value,
            image.value,
            contact.value,
            image_available=image_available,
            weights=weights,
        )

        result = MatchResult(
            physical_match=text.value,
            distinctive_feature_match=image.value,
            contact_match=contact.value,
            overall_similarity=overall,
            image_compared=image_available,
            weights=weights.as_dict(),
            text_outcome=text,
            image_outcome=image,
            contact_outcome=contact,
        )
        log_match_result(existing_case.id, result)
        return result

    async def _guard(self, aspect: str, coro) -> ScoreOutcome:
        """Await a provider call, turning any escaped exception into a 0 score."""
        try:
            outcome = await coro
        except Exception as e:
            log_error(
                "Score provider raised instead of returning a failure",
                aspect=aspect,
                provider=self.provider.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ScoreOutcome.failure(f"{type(e).__name__}: {e}")
        if not isinstance(outcome, ScoreOutcome):
            return ScoreOutcome.failure(f"provider returned {type(outcome).__name__}")
        return outcome
