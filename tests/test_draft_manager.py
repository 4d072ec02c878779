"""
Tests for debounced draft persistence and recovery.
"""

import asyncio
import errno
from datetime import datetime, timedelta, timezone

import pytest

from sumup.drafts import Draft, DraftInputType, DraftManager, SaveStatus
from sumup.errors import StorageFullError
from sumup.storage import InMemoryStore

DEBOUNCE = 0.05


class RecordingStore(InMemoryStore):
    """InMemoryStore that remembers every write."""

    def __init__(self):
        super().__init__()
        self.writes = []

    async def set(self, key, value):
        self.writes.append((key, value))
        await super().set(key, value)


class FullDiskStore(InMemoryStore):
    async def set(self, key, value):
        raise OSError(errno.ENOSPC, "No space left on device")


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def drafts(store, clock):
    return DraftManager(store, debounce_seconds=DEBOUNCE, clock=clock)


class TestDebounce:
    """Edits within the debounce window produce one write."""

    @pytest.mark.asyncio
    async def test_burst_of_edits_writes_once(self, drafts, store):
        """Two edits 10 ms apart: exactly one write, holding the last content."""
        drafts.on_input_changed("first", DraftInputType.TEXT)
        await asyncio.sleep(0.01)
        drafts.on_input_changed("second", DraftInputType.TEXT)

        await asyncio.sleep(DEBOUNCE * 4)

        assert len(store.writes) == 1
        key, record = store.writes[0]
        assert key == "draft.TEXT"
        assert record['content'] == "second"
        assert drafts.last_status.state == SaveStatus.SAVED

    @pytest.mark.asyncio
    async def test_two_second_window(self, store, clock):
        """Edits 500 ms apart with the default 2 s window, then 2 s of silence: one write."""
        drafts = DraftManager(store, debounce_seconds=2.0, clock=clock)

        drafts.on_input_changed("draft v1", DraftInputType.TEXT)
        await asyncio.sleep(0.5)
        drafts.on_input_changed("draft v2", DraftInputType.TEXT)
        assert store.writes == []

        await asyncio.sleep(2.2)

        assert len(store.writes) == 1
        assert store.writes[0][1]['content'] == "draft v2"

    @pytest.mark.asyncio
    async def test_nothing_written_before_window(self, drafts, store):
        drafts.on_input_changed("typing", DraftInputType.TEXT)
        assert drafts.has_pending(DraftInputType.TEXT)
        assert store.writes == []
        drafts.cancel_pending()

    @pytest.mark.asyncio
    async def test_input_types_debounce_independently(self, drafts, store):
        drafts.on_input_changed("typed", DraftInputType.TEXT)
        drafts.on_input_changed("pasted", DraftInputType.PASTED)

        await asyncio.sleep(DEBOUNCE * 4)

        assert sorted(key for key, _ in store.writes) == ["draft.PASTED", "draft.TEXT"]

    @pytest.mark.asyncio
    async def test_flush_writes_pending_now(self, drafts, store):
        drafts.on_input_changed("unsaved work", DraftInputType.TEXT)

        await drafts.flush()

        assert len(store.writes) == 1
        assert not drafts.has_pending()
        await asyncio.sleep(DEBOUNCE * 2)
        assert len(store.writes) == 1

    @pytest.mark.asyncio
    async def test_cancel_pending_drops_edit(self, drafts, store):
        drafts.on_input_changed("discard me", DraftInputType.TEXT)
        drafts.cancel_pending()

        await asyncio.sleep(DEBOUNCE * 2)

        assert store.writes == []


class TestSaveNow:

    @pytest.mark.asyncio
    async def test_record_fields(self, drafts, store, clock):
        await drafts.save_now("Three little words", DraftInputType.OCR_SCANNED)

        draft = await drafts.get_draft(DraftInputType.OCR_SCANNED)
        assert draft == Draft("Three little words", DraftInputType.OCR_SCANNED, clock.now)
        assert store.writes[0][1]['word_count'] == 3
        assert store.writes[0][1]['character_count'] == 18

    @pytest.mark.asyncio
    async def test_whitespace_clears_draft(self, drafts):
        """Saving whitespace-only content removes the stored draft."""
        await drafts.save_now("keep this", DraftInputType.TEXT)
        await drafts.save_now("   \n ", DraftInputType.TEXT)
        assert await drafts.get_draft(DraftInputType.TEXT) is None

    @pytest.mark.asyncio
    async def test_write_failure_sets_status(self, clock):
        """A full disk is reported in last_status, never raised."""
        drafts = DraftManager(FullDiskStore(), debounce_seconds=DEBOUNCE, clock=clock)

        status = await drafts.save_now("important notes", DraftInputType.TEXT)

        assert status.state == SaveStatus.FAILED
        assert isinstance(status.error, StorageFullError)
        assert drafts.last_status is status

    @pytest.mark.asyncio
    async def test_debounced_write_failure_does_not_raise(self, clock):
        drafts = DraftManager(FullDiskStore(), debounce_seconds=DEBOUNCE, clock=clock)
        drafts.on_input_changed("important notes", DraftInputType.TEXT)

        await asyncio.sleep(DEBOUNCE * 4)

        assert drafts.last_status.state == SaveStatus.FAILED

    def test_preview_is_truncated(self):
        draft = Draft("x" * 150, DraftInputType.TEXT, datetime.now(timezone.utc))
        assert draft.preview == "x" * 100 + "..."


class TestRestore:
    """Recovery offers on a fresh input context."""

    @pytest.mark.asyncio
    async def test_offered_when_input_empty(self, drafts):
        await drafts.save_now("draft text", DraftInputType.TEXT)
        draft = await drafts.offer_restore(DraftInputType.TEXT, live_input="")
        assert draft is not None
        assert draft.content == "draft text"

    @pytest.mark.asyncio
    async def test_not_offered_over_live_input(self, drafts):
        await drafts.save_now("draft text", DraftInputType.TEXT)
        assert await drafts.offer_restore(DraftInputType.TEXT, live_input="already typing") is None
        assert await drafts.get_draft(DraftInputType.TEXT) is not None

    @pytest.mark.asyncio
    async def test_stale_draft_is_cleared(self, drafts, clock):
        """Drafts older than the maximum age are discarded."""
        await drafts.save_now("yesterday's text", DraftInputType.TEXT)
        clock.advance(hours=25)

        assert await drafts.offer_restore(DraftInputType.TEXT) is None
        assert await drafts.get_draft(DraftInputType.TEXT) is None

    @pytest.mark.asyncio
    async def test_draft_within_max_age_is_offered(self, store, clock):
        drafts = DraftManager(store, debounce_seconds=DEBOUNCE, max_age=timedelta(hours=1), clock=clock)
        await drafts.save_now("recent", DraftInputType.TEXT)
        clock.advance(minutes=59)
        assert await drafts.offer_restore(DraftInputType.TEXT) is not None

    @pytest.mark.asyncio
    async def test_malformed_record_is_ignored(self, clock):
        store = InMemoryStore({"draft.TEXT": {"content": "x"}})
        drafts = DraftManager(store, clock=clock)
        assert await drafts.get_draft(DraftInputType.TEXT) is None

    @pytest.mark.asyncio
    async def test_clear_removes_draft_and_pending(self, drafts, store):
        await drafts.save_now("sent already", DraftInputType.TEXT)
        drafts.on_input_changed("more edits", DraftInputType.TEXT)

        await drafts.clear(DraftInputType.TEXT)
        await asyncio.sleep(DEBOUNCE * 2)

        assert await drafts.get_draft(DraftInputType.TEXT) is None
        assert len(store.writes) == 1
