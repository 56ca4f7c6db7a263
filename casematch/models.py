"""Case report models.

``CaseRecord`` is a stored, fully populated report. ``CaseDraft`` is what a
reporter submits: every field is optional until ``validate_for_submission``
runs, and drafts are what the matcher compares against stored records.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator

MIN_AGE = 0
MAX_AGE = 18
MIN_DESCRIPTION_LENGTH = 10


class CaseType(str, Enum):
    MISSING = "missing"
    LABOUR = "child_labour"
    HARASSMENT = "child_harassment"


class CaseStatus(str, Enum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"


class CaseValidationError(ValueError):
    """Raised when a draft is missing required fields or has invalid values."""

    def __init__(self, issues: List[str]):
        self.issues = issues
        super().__init__("; ".join(issues))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_traits(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return None
    try:
        parsed = json.loads(v)
    except json.JSONDecodeError as e:
        raise ValueError(f"physical_traits must be JSON text: {e}")
    if not isinstance(parsed, dict):
        raise ValueError("physical_traits must be a JSON object")
    return v


class CaseDraft(BaseModel):
    """A partially populated case report, as submitted."""

    child_name: Optional[str] = None
    age: Optional[int] = None
    location: Optional[str] = None
    description: Optional[str] = None
    contact_info: Optional[str] = None
    case_type: CaseType = CaseType.MISSING
    image_url: Optional[str] = None
    physical_traits: Optional[str] = None

    @validator("physical_traits")
    def validate_traits(cls, v):
        return _check_traits(v)

    def validate_for_submission(self) -> None:
        """Apply the report form rules.

        Raises:
            CaseValidationError: listing every rule the draft breaks.
        """
        issues = []
        if not (self.child_name or "").strip():
            issues.append("child_name is required")
        if self.age is None:
            issues.append("age is required")
        elif not MIN_AGE <= self.age <= MAX_AGE:
            issues.append(f"age must be between {MIN_AGE} and {MAX_AGE}")
        if not (self.location or "").strip():
            issues.append("location is required")
        if len((self.description or "").strip()) < MIN_DESCRIPTION_LENGTH:
            issues.append(f"description must be at least {MIN_DESCRIPTION_LENGTH} characters")
        if not (self.contact_info or "").strip():
            issues.append("contact_info is required")
        if issues:
            raise CaseValidationError(issues)


class CaseRecord(BaseModel):
    """A stored case report."""

    id: int
    child_name: str
    age: int = Field(..., ge=MIN_AGE, le=MAX_AGE)
    location: str
    description: str
    contact_info: str
    case_type: CaseType = CaseType.MISSING
    image_url: Optional[str] = None
    physical_traits: Optional[str] = None
    status: CaseStatus = CaseStatus.OPEN
    reporter_id: Optional[int] = None
    blockchain_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @validator("physical_traits")
    def validate_traits(cls, v):
        return _check_traits(v)

    @validator("created_at", "updated_at")
    def ensure_aware(cls, v):
        # naive timestamps are UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def traits(self) -> Dict[str, Any]:
        """Return the physical traits blob as a dict (empty when absent)."""
        if not self.physical_traits:
            return {}
        return json.loads(self.physical_traits)
