"""Deterministic contact-info similarity.

Reporters type the same phone number in many shapes ("555-123-4567",
"(555) 123-4567", "+1 555 123 4567"), so both sides are normalized before
any comparison. No external calls are made here.
"""

from __future__ import annotations

import re
from typing import Optional

from casematch.matching.result import ScoreOutcome

_STRIP_RE = re.compile(r"[\s\-+()]")

EXACT_SCORE = 1.0
CONTAINS_SCORE = 0.9
SUFFIX_SCORE = 0.8
TAIL_SCORE = 0.7
TAIL_LENGTH = 8


def normalize_contact(contact: str) -> str:
    """Lowercase and drop whitespace, hyphens, plus signs and parentheses."""
    return _STRIP_RE.sub("", contact.lower())


def compare_contact_info(new_contact: Optional[str], existing_contact: Optional[str]) -> float:
    """Score how likely two contact strings point to the same reporter.

    Checks run from strongest to weakest evidence:

    - exact match after normalization: 1.0
    - the longer value ends with the shorter one (country-code variant): 0.8
    - one value contains the other (extension, extra prefix text): 0.9
    - the last 8 characters agree (truncated numbers): 0.7

    The suffix test runs before the containment test, so a number that only
    differs by a leading country code scores 0.8 rather than 0.9.

    Returns:
        Similarity in [0, 1]; 0.0 when the new contact is missing.
    """
    if not new_contact or not existing_contact:
        return 0.0

    a = normalize_contact(new_contact)
    b = normalize_contact(existing_contact)
    if not a or not b:
        return 0.0

    if a == b:
        return EXACT_SCORE

    longer, shorter = (a, b) if len(a) >= len(b) else (b, a)
    if longer.endswith(shorter):
        return SUFFIX_SCORE
    if shorter in longer:
        return CONTAINS_SCORE
    if len(a) >= TAIL_LENGTH and len(b) >= TAIL_LENGTH and a[-TAIL_LENGTH:] == b[-TAIL_LENGTH:]:
        return TAIL_SCORE
    return 0.0


def contact_outcome(new_contact: Optional[str], existing_contact: Optional[str]) -> ScoreOutcome:
    """Wrap ``compare_contact_info`` as a ``ScoreOutcome``."""
    if not new_contact:
        return ScoreOutcome.unavailable("new case has no contact info")
    return ScoreOutcome.ok(compare_contact_info(new_contact, existing_contact))
