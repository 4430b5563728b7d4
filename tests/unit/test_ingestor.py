"""
Unit tests for the event ingestor.
"""

import logging

import pytest

from verifier.services.ingestor import (
    EventIngestor,
    extract_issue_number,
    extract_repository_name,
    is_completion_signal,
)
from verifier.services.project_mapping import ProjectMapping


LOGINS = ["github-actions[bot]", "scar-bot"]
KEYWORDS = ["implementation complete", "pr created", "pull request created", "work completed"]


@pytest.fixture
def ingestor(event_store):
    return EventIngestor(
        event_store=event_store,
        project_mapping=ProjectMapping.default(),
        automation_logins=LOGINS,
        completion_keywords=KEYWORDS,
    )


class TestCompletionClassification:
    """Test is_completion_signal."""

    def test_bot_comment_with_keyword(self, comment_payload):
        payload = comment_payload(body="Implementation complete. PR created: #43")

        assert is_completion_signal("issue_comment", payload, LOGINS, KEYWORDS) is True

    @pytest.mark.parametrize("body", [
        "IMPLEMENTATION COMPLETE",
        "Pull Request Created for this issue",
        "All work completed",
        "see the pr created above",
    ])
    def test_keywords_match_case_insensitively(self, comment_payload, body):
        payload = comment_payload(body=body)

        assert is_completion_signal("issue_comment", payload, LOGINS, KEYWORDS) is True

    def test_human_author_not_a_signal(self, comment_payload):
        payload = comment_payload(login="octocat")

        assert is_completion_signal("issue_comment", payload, LOGINS, KEYWORDS) is False

    def test_bot_comment_without_keyword(self, comment_payload):
        payload = comment_payload(body="Starting work on this issue")

        assert is_completion_signal("issue_comment", payload, LOGINS, KEYWORDS) is False

    def test_other_event_type_not_a_signal(self, comment_payload):
        payload = comment_payload()

        assert is_completion_signal("issues", payload, LOGINS, KEYWORDS) is False

    @pytest.mark.parametrize("payload", [
        {},
        {"comment": "text"},
        {"comment": {"body": None, "user": {"login": "scar-bot"}}},
        {"comment": {"body": "implementation complete", "user": None}},
        {"comment": {"body": ["implementation complete"], "user": {"login": "scar-bot"}}},
    ])
    def test_malformed_payloads_not_a_signal(self, payload):
        assert is_completion_signal("issue_comment", payload, LOGINS, KEYWORDS) is False


class TestPayloadExtraction:
    """Test repository and issue number extraction."""

    def test_issue_number_from_issue(self):
        assert extract_issue_number({"issue": {"number": 7}}) == 7

    def test_issue_number_from_pull_request(self):
        assert extract_issue_number({"pull_request": {"number": 12}}) == 12

    @pytest.mark.parametrize("number", [0, -3, "abc", None, True, 4.5])
    def test_invalid_issue_numbers_become_none(self, number):
        assert extract_issue_number({"issue": {"number": number}}) is None

    def test_missing_issue_number(self):
        assert extract_issue_number({"repository": {"name": "odin"}}) is None

    def test_repository_name(self):
        assert extract_repository_name({"repository": {"name": "odin", "full_name": "acme/odin"}}) == "odin"

    def test_missing_repository_name(self):
        assert extract_repository_name({"repository": "odin"}) is None
        assert extract_repository_name({}) is None


class TestEventIngestor:
    """Test EventIngestor.ingest."""

    @pytest.mark.asyncio
    async def test_completion_event_stored_unprocessed(self, ingestor, event_store, comment_payload):
        payload = comment_payload(repository="consilio-planning", issue_number=42)

        result = await ingestor.ingest("issue_comment", payload, delivery_id="abc-123")

        assert result.should_verify is True
        assert result.project_name == "consilio"
        assert result.issue_number == 42

        stored = event_store.events[result.event_id]
        assert stored.processed is False
        assert stored.completion_signal is True
        assert stored.delivery_id == "abc-123"
        assert stored.payload == payload

    @pytest.mark.asyncio
    async def test_unmapped_repository_stored_with_null_project(self, ingestor, event_store, comment_payload):
        payload = comment_payload(repository="unknown-repo")

        result = await ingestor.ingest("issue_comment", payload, delivery_id="abc-124")

        assert result.project_name is None
        assert result.should_verify is False
        assert event_store.events[result.event_id].project_name is None

        pending = await event_store.fetch_pending_completions(limit=10)
        assert pending == []

    @pytest.mark.asyncio
    async def test_openhorizon_alias(self, ingestor, comment_payload):
        payload = comment_payload(repository="openhorizon.cc")

        result = await ingestor.ingest("issue_comment", payload)

        assert result.project_name == "openhorizon"

    @pytest.mark.asyncio
    async def test_non_completion_event_still_stored(self, ingestor, event_store):
        payload = {"action": "opened", "issue": {"number": 5}, "repository": {"name": "odin"}}

        result = await ingestor.ingest("issues", payload)

        assert result.completion_signal is False
        assert result.should_verify is False
        assert len(event_store.events) == 1

    @pytest.mark.asyncio
    async def test_routing_decision_logged(self, ingestor, comment_payload, caplog):
        caplog.set_level(logging.DEBUG, logger="verifier.services.ingestor")

        queued = await ingestor.ingest("issue_comment", comment_payload(issue_number=42))
        audit = await ingestor.ingest("issue_comment", comment_payload(repository="unknown-repo"))

        messages = [record.getMessage() for record in caplog.records]
        assert f"Event {queued.event_id} queued for verification of consilio #42" in messages
        assert f"Event {audit.event_id} stored for audit only" in messages
