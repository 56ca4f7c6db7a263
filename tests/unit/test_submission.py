"""Unit tests for case submission."""

import pytest

from casematch.matching.detector import DuplicateCaseDetector
from casematch.matching.matcher import DuplicateCaseMatcher
from casematch.models import CaseDraft, CaseValidationError
from casematch.store import CaseRepository
from casematch.submission import CaseSubmissionService

pytestmark = pytest.mark.unit


def draft(**overrides):
    fields = dict(
        child_name="Jane Doe",
        age=12,
        location="Central Park",
        description="Brown hair, blue eyes, red jacket.",
        contact_info="555-123-4567",
    )
    fields.update(overrides)
    return CaseDraft(**fields)


@pytest.fixture
def repo():
    return CaseRepository()


def service_for(repo, provider, **kwargs):
    detector = DuplicateCaseDetector(matcher=DuplicateCaseMatcher(provider=provider), **kwargs)
    return CaseSubmissionService(repo, detector=detector)


@pytest.mark.asyncio
async def test_first_report_is_accepted(repo, fake_provider):
    outcome = await service_for(repo, fake_provider).submit(draft(), reporter_id=5)

    assert outcome.accepted is True
    assert outcome.case.id == 1
    assert outcome.case.reporter_id == 5
    assert outcome.duplicate_check.candidates_checked == 0
    assert len(repo) == 1


@pytest.mark.asyncio
async def test_likely_duplicate_is_held(repo, fake_provider):
    service = service_for(repo, fake_provider)
    await service.submit(draft())

    outcome = await service.submit(draft(contact_info="(555) 123 4567"))

    assert outcome.accepted is False
    assert outcome.case is None
    assert outcome.duplicate_check.best_match.case_id == 1
    assert len(repo) == 1


@pytest.mark.asyncio
async def test_force_stores_despite_duplicate(repo, fake_provider):
    service = service_for(repo, fake_provider)
    await service.submit(draft())

    outcome = await service.submit(draft(), force=True)

    assert outcome.accepted is True
    assert outcome.duplicate_check.is_likely_duplicate is True
    assert len(repo) == 2


@pytest.mark.asyncio
async def test_different_child_is_accepted(repo, provider_factory):
    service = service_for(repo, provider_factory(text=0.1))
    await service.submit(draft())

    outcome = await service.submit(draft(child_name="Tom Smith", contact_info="555-987-6543"))

    assert outcome.accepted is True
    assert outcome.duplicate_check.best_match.score < 0.8
    assert len(repo) == 2


@pytest.mark.asyncio
async def test_invalid_draft_never_reaches_detector(repo, fake_provider):
    with pytest.raises(CaseValidationError):
        await service_for(repo, fake_provider).submit(draft(location=""))
    assert fake_provider.text_calls == []
    assert len(repo) == 0


@pytest.mark.asyncio
async def test_only_recent_cases_are_candidates(repo, fake_provider):
    service = service_for(repo, fake_provider, candidate_limit=1)
    for name in ("Ann Lee", "Bob Ray"):
        await service.submit(draft(child_name=name, contact_info=f"{name} parent"), force=True)

    outcome = await service.submit(draft(child_name="Cat Kim", contact_info="cat parent"))

    assert outcome.duplicate_check.candidates_checked == 1
    assert outcome.duplicate_check.best_match.child_name == "Bob Ray"


class FakeTraitExtractor:
    def __init__(self, traits):
        self.traits = traits
        self.calls = []

    async def describe_image(self, uri):
        self.calls.append(uri)
        return self.traits


@pytest.mark.asyncio
async def test_traits_filled_from_photo(repo, fake_provider):
    extractor = FakeTraitExtractor({"hairColor": "brown", "eyeColor": "blue"})
    detector = DuplicateCaseDetector(matcher=DuplicateCaseMatcher(provider=fake_provider))
    service = CaseSubmissionService(repo, detector=detector, trait_extractor=extractor)

    outcome = await service.submit(draft(image_url="https://cdn.example.org/jane.jpg"))

    assert extractor.calls == ["https://cdn.example.org/jane.jpg"]
    assert outcome.case.traits() == {"hairColor": "brown", "eyeColor": "blue"}


@pytest.mark.asyncio
async def test_reporter_traits_are_kept(repo, fake_provider):
    extractor = FakeTraitExtractor({"hairColor": "black"})
    detector = DuplicateCaseDetector(matcher=DuplicateCaseMatcher(provider=fake_provider))
    service = CaseSubmissionService(repo, detector=detector, trait_extractor=extractor)

    outcome = await service.submit(
        draft(image_url="https://cdn.example.org/jane.jpg", physical_traits='{"hairColor": "brown"}')
    )

    assert extractor.calls == []
    assert outcome.case.traits() == {"hairColor": "brown"}


@pytest.mark.asyncio
async def test_no_traits_without_photo_or_on_failure(repo, fake_provider):
    extractor = FakeTraitExtractor(None)
    detector = DuplicateCaseDetector(matcher=DuplicateCaseMatcher(provider=fake_provider))
    service = CaseSubmissionService(repo, detector=detector, trait_extractor=extractor)

    without_photo = await service.submit(draft())
    failed = await service.submit(
        draft(child_name="Tom Smith", contact_info="555-987-6543", image_url="https://cdn.example.org/t.jpg")
    )

    assert extractor.calls == ["https://cdn.example.org/t.jpg"]
    assert without_photo.case.physical_traits is None
    assert failed.case.physical_traits is None
