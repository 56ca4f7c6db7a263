"""Tests for the command line entry point."""

import json
import os
import pytest
from unittest.mock import patch

import main

pytestmark = pytest.mark.unit

DRAFT = {
    "child_name": "Jane Doe",
    "age": 12,
    "location": "Central Park",
    "description": "Brown hair, blue eyes, red jacket.",
    "contact_info": "555-123-4567",
}

STORED = [
    {
        "id": 1,
        "child_name": "Jane Doe",
        "age": 12,
        "location": "Central Park, New York",
        "description": "Brown hair, blue eyes, last seen in a red jacket.",
        "contact_info": "(555) 123-4567",
        "created_at": "2024-12-24T14:30:00Z",
    },
    {
        "id": 2,
        "child_name": "Tom Smith",
        "age": 8,
        "location": "Riverside",
        "description": "Blond hair, green coat, missing since Monday.",
        "contact_info": "tom.parent@example.org",
        "created_at": "2024-12-25T09:00:00Z",
    },
]


@pytest.fixture
def case_files(tmp_path):
    draft_path = tmp_path / "draft.json"
    stored_path = tmp_path / "cases.json"
    draft_path.write_text(json.dumps(DRAFT), encoding="utf-8")
    stored_path.write_text(json.dumps(STORED), encoding="utf-8")
    return draft_path, stored_path


@pytest.fixture
def use_provider(provider_factory):
    """Route the matcher's default provider to a fake one."""
    def _use(**scores):
        provider = provider_factory(**scores)
        return patch("casematch.matching.matcher.LLMScoreProvider", return_value=provider)
    return _use


def test_duplicate_exit_code_and_json_report(case_files, use_provider, capsys):
    draft_path, stored_path = case_files
    with use_provider(text=1.0):
        code = main.main(["check", "--case", str(draft_path), "--existing", str(stored_path), "--json"])

    assert code == main.EXIT_DUPLICATE
    report = json.loads(capsys.readouterr().out)
    assert report["isLikelyDuplicate"] is True
    assert report["matches"][0]["caseId"] == 1
    assert report["matches"][0]["overallSimilarity"] == pytest.approx(1.0)


def test_no_duplicate_text_report(case_files, use_provider, capsys):
    draft_path, stored_path = case_files
    with use_provider(text=0.2):
        code = main.main(["check", "--case", str(draft_path), "--existing", str(stored_path)])

    assert code == main.EXIT_OK
    out = capsys.readouterr().out
    assert "Compared against 2 case(s)" in out
    assert "No likely duplicate found" in out


def test_threshold_and_limit_flags(case_files, use_provider, capsys):
    draft_path, stored_path = case_files
    with use_provider(text=0.2):
        code = main.main([
            "check", "--case", str(draft_path), "--existing", str(stored_path),
            "--threshold", "0.4", "--limit", "1", "--json",
        ])

    report = json.loads(capsys.readouterr().out)
    assert report["candidatesChecked"] == 1
    # only the newest stored case (Tom Smith, id 2) is compared
    assert report["matches"][0]["caseId"] == 2
    assert code == main.EXIT_OK


def test_missing_file_is_an_error(tmp_path, use_provider, capsys):
    with use_provider():
        code = main.main(["check", "--case", str(tmp_path / "nope.json"), "--existing", str(tmp_path / "x.json")])
    assert code == main.EXIT_ERROR
    assert "Could not load case files" in capsys.readouterr().err


def test_existing_must_be_a_list(case_files, use_provider):
    draft_path, stored_path = case_files
    stored_path.write_text(json.dumps(STORED[0]), encoding="utf-8")
    with use_provider():
        code = main.main(["check", "--case", str(draft_path), "--existing", str(stored_path)])
    assert code == main.EXIT_ERROR


def test_invalid_configuration_is_reported(case_files, capsys):
    draft_path, stored_path = case_files
    with patch.dict(os.environ, {"OPENAI_API_KEY": ""}):
        code = main.main(["check", "--case", str(draft_path), "--existing", str(stored_path), "--provider", "openai"])
    assert code == main.EXIT_ERROR
    assert "OPENAI_API_KEY" in capsys.readouterr().err


def test_command_is_required():
    with pytest.raises(SystemExit):
        main.main([])


def test_mixed_timestamp_formats(case_files, use_provider, capsys):
    draft_path, stored_path = case_files
    stored = [dict(STORED[0], created_at="2025-01-02T00:00:00"), STORED[1]]
    stored_path.write_text(json.dumps(stored), encoding="utf-8")
    with use_provider(text=0.2):
        code = main.main(["check", "--case", str(draft_path), "--existing", str(stored_path), "--json"])

    assert code == main.EXIT_OK
    report = json.loads(capsys.readouterr().out)
    assert report["candidatesChecked"] == 2
