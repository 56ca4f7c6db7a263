"""Data classes for case comparison results."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ScoreOutcome:
    """Result of one sub-comparison (text, image or contact).

    A failed comparison and a confirmed mismatch both contribute ``0.0`` to
    the overall score; ``error`` keeps them apart for logs and tests.

    Attributes:
        score: Raw similarity reported by the comparison (0.0-1.0).
        available: Whether both sides carried the evidence being compared.
        error: Description of the failure, ``None`` on success.
        details: Advisory breakdown returned by the scoring service.
    """

    score: float = 0.0
    available: bool = True
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, score: float, details: Optional[Dict[str, Any]] = None) -> "ScoreOutcome":
        return cls(score=clamp_score(score), details=details or {})

    @classmethod
    def failure(cls, error: str) -> "ScoreOutcome":
        return cls(score=0.0, error=error)

    @classmethod
    def unavailable(cls, reason: str) -> "ScoreOutcome":
        return cls(score=0.0, available=False, details={"reason": reason})

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def value(self) -> float:
        """Score as seen by the weighting: 0.0 on failure or missing evidence."""
        if self.failed or not self.available:
            return 0.0
        return self.score


def clamp_score(score: float) -> float:
    score = float(score)
    if not math.isfinite(score):
        raise ValueError(f"Similarity score is not finite: {score}")
    return max(0.0, min(1.0, score))


@dataclass(frozen=True)
class MatchResult:
    """Outcome of comparing a draft case with one stored case.

    Attributes:
        physical_match: Text (name and description) similarity.
        distinctive_feature_match: Image similarity; 0.0 when not compared.
        contact_match: Contact-info similarity.
        overall_similarity: Weighted combination of the three scores.
        image_compared: Whether image evidence took part in the weighting.
        weights: ``{"text", "image", "contact"}`` weights actually used.
    """

    physical_match: float
    distinctive_feature_match: float
    contact_match: float
    overall_similarity: float
    image_compared: bool
    weights: Dict[str, float]
    text_outcome: ScoreOutcome
    image_outcome: ScoreOutcome
    contact_outcome: ScoreOutcome

    def outcomes(self) -> Dict[str, ScoreOutcome]:
        return {
            "text": self.text_outcome,
            "image": self.image_outcome,
            "contact": self.contact_outcome,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the API field names used by the web client."""
        return {
            "physicalMatch": self.physical_match,
            "distinctiveFeatureMatch": self.distinctive_feature_match,
            "contactMatch": self.contact_match,
            "overallSimilarity": self.overall_similarity,
            "imageCompared": self.image_compared,
            "weights": dict(self.weights),
            "errors": {
                name: outcome.error
                for name, outcome in self.outcomes().items()
                if outcome.failed
            },
        }
