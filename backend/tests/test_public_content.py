from __future__ import annotations

import pytest

from docpanel.core.security import hash_secret_password
from docpanel.models import Collection
from docpanel.services.public_content import PublicOutcome
from docpanel.services.session_store import SessionStore, VisitorSession
from tests.fakes import FakeCache

ENTRIES = Collection.ENTRIES.value
PROJECTS = Collection.PROJECTS.value


@pytest.mark.asyncio
async def test_published_entry_is_rendered_and_counted(harness) -> None:
    entry = harness.seed_entry(status="published", content="one two three")
    result = await harness.public.get_public_entry(entry["id"], VisitorSession(sid="s"), ip="198.51.100.1")
    await harness.settle()

    assert result.outcome is PublicOutcome.CONTENT
    assert result.entry["content"] == "one two three"
    assert result.entry["reading_time_minutes"] == 1
    assert harness.store.raw(ENTRIES, entry["id"])["views"] == 1


@pytest.mark.asyncio
async def test_public_view_renders_staged_fields(harness) -> None:
    entry = harness.seed_entry(status="published", has_staged_changes=True, staged_content="pending")
    result = await harness.public.get_public_entry(entry["id"], VisitorSession(sid="s"), ip="198.51.100.1")
    await harness.settle()
    assert result.entry["content"] == "pending"


@pytest.mark.asyncio
async def test_drafts_are_not_public(harness) -> None:
    entry = harness.seed_entry(status="draft")
    result = await harness.public.get_public_entry(entry["id"], VisitorSession(sid="s"))
    assert result.outcome is PublicOutcome.NOT_FOUND


@pytest.mark.asyncio
async def test_project_password_gate(harness) -> None:
    harness.store.seed(
        PROJECTS,
        {
            "id": "project00000001",
            "password_protected": True,
            "access_password_hash": hash_secret_password("letmein"),
            "view_tracking_enabled": False,
        },
    )
    entry = harness.seed_entry(status="published")
    session = VisitorSession(sid="s")

    gated = await harness.public.get_public_entry(entry["id"], session)
    assert gated.outcome is PublicOutcome.PASSWORD_REQUIRED

    wrong = await harness.previews.verify_project_password("project00000001", "nope", session)
    assert wrong.error == "Incorrect password"
    check = await harness.previews.verify_project_password("project00000001", "letmein", session)
    assert check.ok is True

    opened = await harness.public.get_public_entry(entry["id"], session)
    await harness.settle()
    assert opened.outcome is PublicOutcome.CONTENT
    assert harness.store.raw(ENTRIES, entry["id"])["views"] == 0


@pytest.mark.asyncio
async def test_feedback_only_for_published_entries(harness) -> None:
    draft = harness.seed_entry(status="draft")
    published = harness.seed_entry(status="published")
    assert await harness.public.record_feedback(draft["id"], True) is None
    assert await harness.public.record_feedback(published["id"], True) == {"helpful_yes": 1, "helpful_no": 0}


@pytest.mark.asyncio
async def test_session_store_round_trip() -> None:
    store = SessionStore(FakeCache(), ttl_hours=1)
    session = await store.load(None)
    assert session.is_new is True
    session.valid_previews["tok"] = True
    await store.save(session)

    loaded = await store.load(session.sid)
    assert loaded.is_new is False
    assert loaded.has_preview("tok")
    assert not (await store.load("unknown")).has_preview("tok")
