"""In-memory case repository.

Stands in for the case table: assigns ids, stamps creation and update
times, and only allows the mutations a stored report supports (status
transitions and a one-time blockchain id backfill). Cases are never deleted.
"""
from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from casematch.models import CaseDraft, CaseRecord, CaseStatus, utcnow
from casematch.utils.logger import log_info

ALLOWED_TRANSITIONS = {
    CaseStatus.OPEN: {CaseStatus.INVESTIGATING, CaseStatus.RESOLVED},
    CaseStatus.INVESTIGATING: {CaseStatus.OPEN, CaseStatus.RESOLVED},
    CaseStatus.RESOLVED: set(),
}


class CaseStoreError(Exception):
    """Base error for repository operations."""


class CaseNotFoundError(CaseStoreError):
    def __init__(self, case_id: int):
        self.case_id = case_id
        super().__init__(f"Case {case_id} not found")


class InvalidStatusTransitionError(CaseStoreError):
    def __init__(self, current: CaseStatus, requested: CaseStatus):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move case from {current.value} to {requested.value}")


class CaseRepository:
    """Thread-safe in-memory store of ``CaseRecord`` objects."""

    def __init__(self):
        self._cases: Dict[int, CaseRecord] = {}
        self._next_id = 1
        self._last_stamp: Optional[datetime] = None
        self._lock = threading.Lock()

    def _stamp(self) -> datetime:
        # Strictly increasing even when the clock does not advance between calls
        now = utcnow()
        if self._last_stamp is not None and now <= self._last_stamp:
            now = self._last_stamp + timedelta(microseconds=1)
        self._last_stamp = now
        return now

    def create(self, draft: CaseDraft, reporter_id: Optional[int] = None) -> CaseRecord:
        """Validate a draft and store it as a new open case."""
        draft.validate_for_submission()
        with self._lock:
            stamp = self._stamp()
            record = CaseRecord(
                id=self._next_id,
                child_name=draft.child_name.strip(),
                age=draft.age,
                location=draft.location.strip(),
                description=draft.description.strip(),
                contact_info=draft.contact_info.strip(),
                case_type=draft.case_type,
                image_url=(draft.image_url or "").strip() or None,
                physical_traits=draft.physical_traits,
                status=CaseStatus.OPEN,
                reporter_id=reporter_id,
                created_at=stamp,
                updated_at=stamp,
            )
            self._cases[record.id] = record
            self._next_id += 1

        log_info("Case created", case_id=record.id, case_type=record.case_type.value)
        return record

    def add(self, record: CaseRecord) -> CaseRecord:
        """Insert an already persisted record (e.g. loaded from an export)."""
        with self._lock:
            if record.id in self._cases:
                raise CaseStoreError(f"Case {record.id} already exists")
            self._cases[record.id] = record
            self._next_id = max(self._next_id, record.id + 1)
        return record

    def get(self, case_id: int) -> CaseRecord:
        with self._lock:
            try:
                return self._cases[case_id]
            except KeyError:
                raise CaseNotFoundError(case_id) from None

    def list_recent(self, limit: int = 0) -> List[CaseRecord]:
        """Cases newest first; ``limit`` of 0 returns all of them."""
        with self._lock:
            ordered = sorted(self._cases.values(), key=lambda c: (c.created_at, c.id), reverse=True)
        return ordered if limit <= 0 else ordered[:limit]

    def list_by_reporter(self, reporter_id: int) -> List[CaseRecord]:
        return [c for c in self.list_recent() if c.reporter_id == reporter_id]

    def search(self, query: str) -> List[CaseRecord]:
        """Case-insensitive substring search on child name or location."""
        needle = (query or "").strip().lower()
        if not needle:
            return []
        return [
            c for c in self.list_recent()
            if needle in c.child_name.lower() or needle in c.location.lower()
        ]

    def update_status(self, case_id: int, status: CaseStatus) -> CaseRecord:
        status = CaseStatus(status)
        with self._lock:
            current = self._cases.get(case_id)
            if current is None:
                raise CaseNotFoundError(case_id)
            if status == current.status:
                return current
            if status not in ALLOWED_TRANSITIONS[current.status]:
                raise InvalidStatusTransitionError(current.status, status)
            updated = current.model_copy(update={"status": status, "updated_at": self._stamp()})
            self._cases[case_id] = updated

        log_info("Case status changed", case_id=case_id, old=current.status.value, new=status.value)
        return updated

    def set_blockchain_id(self, case_id: int, blockchain_id: str) -> CaseRecord:
        """Backfill the on-chain record id once notarization has completed."""
        if not blockchain_id:
            raise CaseStoreError("blockchain_id must not be empty")
        with self._lock:
            current = self._cases.get(case_id)
            if current is None:
                raise CaseNotFoundError(case_id)
            if current.blockchain_id == blockchain_id:
                return current
            if current.blockchain_id is not None:
                raise CaseStoreError(f"Case {case_id} already has a blockchain id")
            updated = current.model_copy(update={"blockchain_id": blockchain_id, "updated_at": self._stamp()})
            self._cases[case_id] = updated

        log_info("Case blockchain id recorded", case_id=case_id)
        return updated

    def __len__(self) -> int:
        with self._lock:
            return len(self._cases)
