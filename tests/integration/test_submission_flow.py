"""End-to-end test of the submission flow.

Draft -> duplicate check (LLM text + image scores, contact rules) -> store.
The chat model and the image host are mocked; everything else is real.
"""

import json
import pytest
from unittest.mock import Mock

import httpx

from casematch.matching.cache import ScoreCache
from casematch.matching.detector import DuplicateCaseDetector
from casematch.matching.matcher import DuplicateCaseMatcher
from casematch.matching.providers import LLMScoreProvider
from casematch.models import CaseDraft, CaseStatus
from casematch.store import CaseRepository
from casematch.submission import CaseSubmissionService

pytestmark = pytest.mark.integration


class ScriptedLLM:
    """Chat model stand-in: high scores when both texts mention the same child."""

    async def ainvoke(self, messages):
        content = messages[0].content
        if isinstance(content, list):
            score = 0.9
        else:
            score = 0.95 if content.count("Jane Doe") == 2 else 0.1
        return Mock(content=json.dumps({"similarityScore": score, "reasoning": "scripted"}))


def image_host():
    def handler(request):
        return httpx.Response(200, headers={"content-type": "image/jpeg"}, content=b"\xff\xd8jpeg")

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def service():
    llm = ScriptedLLM()
    provider = LLMScoreProvider(llm=llm, http_client=image_host(), cache=ScoreCache())
    detector = DuplicateCaseDetector(matcher=DuplicateCaseMatcher(provider=provider))
    return CaseSubmissionService(CaseRepository(), detector=detector)


def jane(**overrides):
    fields = dict(
        child_name="Jane Doe",
        age=12,
        location="Central Park",
        description="Brown hair, blue eyes, red jacket.",
        contact_info="555-123-4567",
        image_url="/uploads/1703428200-jane.jpg",
    )
    fields.update(overrides)
    return CaseDraft(**fields)


@pytest.mark.asyncio
async def test_re_report_is_held_and_unrelated_report_is_stored(service):
    first = await service.submit(jane(), reporter_id=1)
    assert first.accepted is True

    again = await service.submit(jane(contact_info="+1 (555) 123-4567", image_url="https://cdn.example.org/j.jpg"))
    assert again.accepted is False
    match = again.duplicate_check.best_match
    assert match.case_id == first.case.id
    assert match.result.image_compared is True
    # 0.4 * 0.95 + 0.4 * 0.9 + 0.2 * 0.8 (country code suffix)
    assert match.score == pytest.approx(0.9)

    other = await service.submit(
        jane(child_name="Tom Smith", description="Blond boy, green coat.", contact_info="tom@example.org", image_url=None)
    )
    assert other.accepted is True
    assert other.duplicate_check.best_match.result.image_compared is False

    repo = service.repository
    assert [c.child_name for c in repo.list_recent()] == ["Tom Smith", "Jane Doe"]
    repo.update_status(first.case.id, CaseStatus.INVESTIGATING)
    assert repo.get(first.case.id).status == CaseStatus.INVESTIGATING


@pytest.mark.asyncio
async def test_scoring_outage_does_not_block_reports():
    llm = Mock()

    async def down(messages):
        raise httpx.ConnectError("scoring service unreachable")

    llm.ainvoke = down
    provider = LLMScoreProvider(llm=llm)
    service = CaseSubmissionService(
        CaseRepository(), detector=DuplicateCaseDetector(matcher=DuplicateCaseMatcher(provider=provider))
    )

    await service.submit(jane(image_url=None))
    outcome = await service.submit(jane(image_url=None))

    # text failed (0), contact identical: 0.7 * 0 + 0.3 * 1
    result = outcome.duplicate_check.best_match.result
    assert outcome.accepted is True
    assert result.overall_similarity == pytest.approx(0.3)
    assert "text" in result.to_dict()["errors"]
