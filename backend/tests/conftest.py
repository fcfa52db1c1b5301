from __future__ import annotations

import os

os.environ.setdefault("DOCPANEL_APP_SECRET_KEY", "test-secret-key-that-is-at-least-32-chars")
os.environ.setdefault("DOCPANEL_IP_HASH_SALT", "test-salt-1234")
os.environ.setdefault("DOCPANEL_APP_ENV", "test")
os.environ.setdefault("DOCPANEL_SCHEDULER_ENABLED", "false")
os.environ.setdefault("DOCPANEL_PUBLIC_BASE_URL", "https://docs.example.test")

from dataclasses import dataclass  # noqa: E402

import pytest  # noqa: E402

from docpanel.core import background  # noqa: E402
from docpanel.models import Collection  # noqa: E402
from docpanel.services.app_settings_service import AppSettingsService  # noqa: E402
from docpanel.services.audit_service import Actor, AuditService  # noqa: E402
from docpanel.services.bulk_service import BulkActionService  # noqa: E402
from docpanel.services.entry_lifecycle import EntryLifecycleService  # noqa: E402
from docpanel.services.preview_service import PreviewService  # noqa: E402
from docpanel.services.public_content import PublicContentService  # noqa: E402
from docpanel.services.token_sweep import TokenSweepService  # noqa: E402
from docpanel.services.view_tracker import ViewTracker  # noqa: E402
from tests.fakes import (  # noqa: E402
    FakeCache,
    FakeClock,
    InMemoryRecordStore,
    InMemoryViewLogRepository,
    null_session_factory,
)

OWNER = "owner000000001"
PROJECT = "project00000001"


@dataclass
class Harness:
    store: InMemoryRecordStore
    cache: FakeCache
    clock: FakeClock
    views: InMemoryViewLogRepository
    app_settings: AppSettingsService
    audit: AuditService
    previews: PreviewService
    tracker: ViewTracker
    lifecycle: EntryLifecycleService
    bulk: BulkActionService
    sweep: TokenSweepService
    public: PublicContentService
    actor: Actor

    def audit_actions(self) -> list[str]:
        return [row["action"] for row in self.store.all(Collection.AUDIT_LOGS.value)]

    def seed_entry(self, **fields) -> dict:
        record = {
            "title": "Getting started",
            "type": "documentation",
            "content": "hello",
            "status": "draft",
            "tags": "",
            "collection": "",
            "owner": OWNER,
            "project": PROJECT,
            "views": 0,
            "has_staged_changes": False,
        }
        record.update(fields)
        return self.store.seed(Collection.ENTRIES.value, record)

    async def settle(self) -> None:
        await background.drain()


@pytest.fixture
def harness() -> Harness:
    store = InMemoryRecordStore()
    cache = FakeCache()
    clock = FakeClock()
    views = InMemoryViewLogRepository()
    app_settings = AppSettingsService(store, cache)
    audit = AuditService(store, app_settings)
    previews = PreviewService(store, audit, clock=clock, expiry_hours=6)
    tracker = ViewTracker(store, views, null_session_factory, clock=clock.epoch, timeframe_hours=24, bot_markers=["bot"])
    lifecycle = EntryLifecycleService(store, audit, previews, tracker)
    return Harness(
        store=store,
        cache=cache,
        clock=clock,
        views=views,
        app_settings=app_settings,
        audit=audit,
        previews=previews,
        tracker=tracker,
        lifecycle=lifecycle,
        bulk=BulkActionService(lifecycle),
        sweep=TokenSweepService(store, batch_size=2, clock=clock),
        public=PublicContentService(store, tracker, previews, app_settings),
        actor=Actor(user_id=OWNER, ip="203.0.113.9"),
    )
