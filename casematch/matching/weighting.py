"""Weighted combination of sub-scores into one overall similarity."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from casematch.config import get_config

_TOLERANCE = 1e-6


@dataclass(frozen=True)
class MatchWeights:
    """Weights for text, image and contact evidence.

    ``with_image`` applies when both cases were image-compared;
    ``without_image`` applies otherwise and must give the image term 0.
    """

    text: float
    image: float
    contact: float

    def __post_init__(self):
        for name in ("text", "image", "contact"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} weight must not be negative")
        if abs(self.text + self.image + self.contact - 1.0) > _TOLERANCE:
            raise ValueError(
                f"weights must sum to 1, got {self.text + self.image + self.contact}"
            )

    def as_dict(self) -> Dict[str, float]:
        return {"text": self.text, "image": self.image, "contact": self.contact}


DEFAULT_WEIGHTS = MatchWeights(text=0.4, image=0.4, contact=0.2)
NO_IMAGE_WEIGHTS = MatchWeights(text=0.7, image=0.0, contact=0.3)


def weights_from_config(config=None):
    """Build ``(with_image, without_image)`` weights from configuration."""
    config = config or get_config()
    with_image = MatchWeights(
        text=config.match_text_weight,
        image=config.match_image_weight,
        contact=config.match_contact_weight,
    )
    without_image = MatchWeights(
        text=config.match_no_image_text_weight,
        image=0.0,
        contact=config.match_no_image_contact_weight,
    )
    return with_image, without_image


def select_weights(
    image_available: bool,
    with_image: Optional[MatchWeights] = None,
    without_image: Optional[MatchWeights] = None,
) -> MatchWeights:
    if image_available:
        return with_image or DEFAULT_WEIGHTS
    return without_image or NO_IMAGE_WEIGHTS


def calculate_overall_similarity(
    text_similarity: float,
    image_similarity: float,
    contact_similarity: float,
    image_available: bool = True,
    weights: Optional[MatchWeights] = None,
) -> float:
    """Combine sub-scores into the overall similarity.

    When ``image_available`` is False the image term is excluded and its
    weight redistributed (0.7 text, 0.3 contact by default) instead of
    counting a forced zero as a mismatch.

    Args:
        text_similarity: Name/description similarity in [0, 1].
        image_similarity: Image similarity in [0, 1]; ignored without images.
        contact_similarity: Contact similarity in [0, 1].
        image_available: Whether both cases were image-compared.
        weights: Explicit weights; defaults depend on ``image_available``.

    Returns:
        Overall similarity in [0, 1].
    """
    if weights is None:
        weights = select_weights(image_available)
    if not image_available:
        image_similarity = 0.0

    overall = (
        text_similarity * weights.text
        + image_similarity * weights.image
        + contact_similarity * weights.contact
    )
    return max(0.0, min(1.0, overall))
