from __future__ import annotations

from datetime import timedelta

import pytest

from docpanel.core.errors import Forbidden, InvalidState
from docpanel.models import Collection
from docpanel.services.preview_service import PreviewOutcome
from docpanel.services.session_store import VisitorSession

PREVIEWS = Collection.PREVIEWS.value
PROJECT = "project00000001"


@pytest.mark.asyncio
async def test_issue_token_for_draft_returns_link(harness) -> None:
    entry = harness.seed_entry()
    issued = await harness.previews.issue_token(entry["id"], harness.actor, project_id=PROJECT, base_url="https://x.test/")

    assert issued.preview_url == f"https://x.test/preview/{issued.token}"
    assert len(issued.token) == 64
    assert issued.expires_at == harness.clock.now + timedelta(hours=6)
    assert issued.has_password is False
    stored = harness.store.all(PREVIEWS)[0]
    assert stored["entry"] == entry["id"]
    assert stored["password_hash"] is None


@pytest.mark.asyncio
async def test_issue_token_rejects_published_and_foreign_entries(harness) -> None:
    published = harness.seed_entry(status="published")
    foreign = harness.seed_entry(owner="stranger")
    with pytest.raises(InvalidState):
        await harness.previews.issue_token(published["id"], harness.actor, project_id=PROJECT)
    with pytest.raises(Forbidden):
        await harness.previews.issue_token(foreign["id"], harness.actor, project_id=PROJECT)
    await harness.settle()
    assert harness.audit_actions() == ["PREVIEW_GENERATE_FAILURE", "PREVIEW_GENERATE_FAILURE"]
    assert harness.store.all(PREVIEWS) == []


@pytest.mark.asyncio
async def test_reissuing_invalidates_previous_token(harness) -> None:
    entry = harness.seed_entry()
    first = await harness.previews.issue_token(entry["id"], harness.actor, project_id=PROJECT)
    second = await harness.previews.issue_token(entry["id"], harness.actor, project_id=PROJECT)
    session = VisitorSession(sid="s1")

    assert (await harness.previews.resolve(first.token, session)).outcome is PreviewOutcome.INVALID
    assert (await harness.previews.resolve(second.token, session)).outcome is PreviewOutcome.CONTENT
    assert len(harness.store.all(PREVIEWS)) == 1


@pytest.mark.asyncio
async def test_token_expiry_boundary_is_exclusive(harness) -> None:
    entry = harness.seed_entry()
    issued = await harness.previews.issue_token(entry["id"], harness.actor, project_id=PROJECT)
    session = VisitorSession(sid="s1")

    harness.clock.now = issued.expires_at - timedelta(seconds=1)
    assert (await harness.previews.resolve(issued.token, session)).outcome is PreviewOutcome.CONTENT

    harness.clock.now = issued.expires_at
    assert (await harness.previews.resolve(issued.token, session)).outcome is PreviewOutcome.INVALID


@pytest.mark.asyncio
async def test_password_protected_preview_flow(harness) -> None:
    entry = harness.seed_entry(content="draft body")
    issued = await harness.previews.issue_token(entry["id"], harness.actor, project_id=PROJECT, password="secret")
    session = VisitorSession(sid="s1")

    assert issued.has_password is True
    assert (await harness.previews.resolve(issued.token, session)).outcome is PreviewOutcome.PASSWORD_REQUIRED

    wrong = await harness.previews.verify_password(issued.token, "wrong", session)
    assert wrong.ok is False
    assert wrong.error == "Incorrect password"
    assert session.valid_previews == {}

    right = await harness.previews.verify_password(issued.token, "secret", session)
    assert right.ok is True
    resolution = await harness.previews.resolve(issued.token, session)
    assert resolution.outcome is PreviewOutcome.CONTENT
    assert resolution.entry["content"] == "draft body"

    other_session = VisitorSession(sid="s2")
    assert (await harness.previews.resolve(issued.token, other_session)).outcome is PreviewOutcome.PASSWORD_REQUIRED


@pytest.mark.asyncio
async def test_password_check_messages(harness) -> None:
    entry = harness.seed_entry()
    open_link = await harness.previews.issue_token(entry["id"], harness.actor, project_id=PROJECT)
    session = VisitorSession(sid="s1")

    assert (await harness.previews.verify_password(open_link.token, "", session)).error == "Password is required"
    assert (await harness.previews.verify_password(open_link.token, "x", session)).error == "Invalid request"
    assert (await harness.previews.verify_password("nope", "x", session)).error == "Invalid or expired link"


@pytest.mark.asyncio
async def test_preview_of_deleted_entry_is_entry_missing(harness) -> None:
    entry = harness.seed_entry()
    issued = await harness.previews.issue_token(entry["id"], harness.actor, project_id=PROJECT)
    del harness.store.collections[Collection.ENTRIES.value][entry["id"]]
    resolution = await harness.previews.resolve(issued.token, VisitorSession(sid="s1"))
    assert resolution.outcome is PreviewOutcome.ENTRY_MISSING


@pytest.mark.asyncio
async def test_token_purge_failure_does_not_block_issuance(harness) -> None:
    entry = harness.seed_entry()
    harness.store.fail("list", collection=PREVIEWS, times=1)
    issued = await harness.previews.issue_token(entry["id"], harness.actor, project_id=PROJECT)
    assert issued.token
