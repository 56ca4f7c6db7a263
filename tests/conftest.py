"""Pytest configuration and fixtures for casematch tests."""

import os
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

# Add the project root to the Python path
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from casematch.config import reload_config
from casematch.matching.providers import ScoreProvider
from casematch.matching.result import ScoreOutcome
from casematch.models import CaseDraft, CaseRecord
from casematch.utils.circuit_breaker import get_circuit_breaker_registry

TEST_ENV = {
    "LLM_PROVIDER": "openai",
    "OPENAI_API_KEY": "test-openai-key",
    "OPENAI_MODEL": "gpt-4o",
    "CASE_IMAGE_BASE_URL": "https://cases.example.org",
    "DUPLICATE_SIMILARITY_THRESHOLD": "0.8",
    "DUPLICATE_CANDIDATE_LIMIT": "50",
    "CIRCUIT_BREAKER_ENABLED": "true",
    "CIRCUIT_BREAKER_FAILURE_THRESHOLD": "3",
}


@pytest.fixture(autouse=True)
def test_config():
    """Fresh configuration and circuit breakers for every test."""
    with patch.dict(os.environ, TEST_ENV):
        config = reload_config()
        get_circuit_breaker_registry().clear()
        yield config
    get_circuit_breaker_registry().clear()
    reload_config()


class FakeScoreProvider(ScoreProvider):
    """Score provider returning canned outcomes and recording calls."""

    def __init__(self, text=1.0, image=1.0):
        self.text = text
        self.image = image
        self.text_calls = []
        self.image_calls = []

    @property
    def name(self) -> str:
        return "fake"

    @staticmethod
    def _outcome(value):
        if isinstance(value, ScoreOutcome):
            return value
        if isinstance(value, Exception):
            raise value
        return ScoreOutcome.ok(value)

    async def score_text(self, first, second):
        self.text_calls.append((first, second))
        return self._outcome(self.text)

    async def score_images(self, first_uri, second_uri):
        self.image_calls.append((first_uri, second_uri))
        return self._outcome(self.image)


@pytest.fixture
def fake_provider():
    return FakeScoreProvider()


@pytest.fixture
def existing_case():
    """A stored missing-child report with an image."""
    created = datetime(2024, 12, 24, 14, 30, tzinfo=timezone.utc)
    return CaseRecord(
        id=7,
        child_name="Jane Doe",
        age=12,
        location="Central Park, New York",
        description="Brown hair, blue eyes, last seen wearing a red jacket and blue jeans.",
        contact_info="(555) 123-4567",
        image_url="/uploads/1703428200-jane.jpg",
        created_at=created,
        updated_at=created,
    )


@pytest.fixture
def draft_case():
    """A draft re-reporting the same child with different formatting."""
    return CaseDraft(
        child_name="Jane Doe",
        age=12,
        location="Central Park",
        description="12 year old girl, brown hair, blue eyes, red jacket.",
        contact_info="555-123-4567",
        image_url="https://cdn.example.org/jane-2.jpg",
    )


def make_case(case_id, minutes_ago=0, **overrides):
    """Build a stored case created ``minutes_ago`` before a fixed instant."""
    created = datetime(2025, 1, 1, tzinfo=timezone.utc) - timedelta(minutes=minutes_ago)
    fields = {
        "id": case_id,
        "child_name": f"Child {case_id}",
        "age": 10,
        "location": "Springfield",
        "description": f"Description of child number {case_id}.",
        "contact_info": f"555-000-{case_id:04d}",
        "created_at": created,
        "updated_at": created,
    }
    fields.update(overrides)
    return CaseRecord(**fields)


@pytest.fixture
def case_factory():
    return make_case


@pytest.fixture
def provider_factory():
    return FakeScoreProvider
