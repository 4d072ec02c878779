"""
Draft auto-save with debounce and recovery.

Each input-change event cancels the pending save task and schedules a new
one; the draft is written once the input has been quiet for the debounce
window. Write failures are recorded in ``last_status`` and never raised to
the input flow.

Usage:
    drafts = DraftManager(JsonFileStore(DRAFT_STORE_FILE))

    # on every keystroke
    drafts.on_input_changed(text, DraftInputType.TEXT)

    # when a fresh input screen opens
    draft = await drafts.offer_restore(DraftInputType.TEXT, live_input="")
    if draft:
        show_recovery_dialog(draft.preview)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable

from sumup.config import DRAFT_DEBOUNCE_SECONDS, DRAFT_MAX_AGE_HOURS
from sumup.error_classifier import classify_error
from sumup.errors import AppError
from sumup.logging_config import debug_log, warning
from sumup.storage import KeyValueStore

DRAFT_KEY_PREFIX = "draft."
PREVIEW_CHARS = 100


class DraftInputType(Enum):
    """Where the drafted text came from; also the draft's storage key."""
    TEXT = "TEXT"
    PDF_EXTRACTED = "PDF_EXTRACTED"
    OCR_SCANNED = "OCR_SCANNED"
    PASTED = "PASTED"


class SaveStatus(Enum):
    IDLE = "idle"
    SAVED = "saved"
    FAILED = "failed"


@dataclass(frozen=True)
class Draft:
    """Most recent auto-saved snapshot of unsent input."""
    content: str
    input_type: DraftInputType
    modified_at: datetime

    @property
    def character_count(self) -> int:
        return len(self.content)

    @property
    def word_count(self) -> int:
        return len(self.content.split())

    @property
    def preview(self) -> str:
        if len(self.content) > PREVIEW_CHARS:
            return self.content[:PREVIEW_CHARS] + "..."
        return self.content

    def to_record(self) -> dict:
        return {
            'content': self.content,
            'input_type': self.input_type.value,
            'modified_at': self.modified_at.isoformat(),
            'character_count': self.character_count,
            'word_count': self.word_count,
        }

    @classmethod
    def from_record(cls, record: dict) -> Draft:
        return cls(
            content=record['content'],
            input_type=DraftInputType(record['input_type']),
            modified_at=datetime.fromisoformat(record['modified_at']),
        )


@dataclass(frozen=True)
class DraftSaveStatus:
    """Best-effort status of the last persistence attempt."""
    state: SaveStatus = SaveStatus.IDLE
    saved_at: datetime | None = None
    error: AppError | None = None


class DraftManager:
    """
    Debounced draft persistence keyed by input type.

    Args:
        store: Key-value store for draft records.
        debounce_seconds: Quiet period before a pending edit is written.
        max_age: Drafts older than this are discarded on restore.
        clock: Callable returning the current aware UTC datetime.
    """

    def __init__(
        self,
        store: KeyValueStore,
        debounce_seconds: float = DRAFT_DEBOUNCE_SECONDS,
        max_age: timedelta = timedelta(hours=DRAFT_MAX_AGE_HOURS),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.debounce_seconds = debounce_seconds
        self.max_age = max_age
        self._clock = clock
        self._pending: dict[DraftInputType, asyncio.Task] = {}
        self._pending_content: dict[DraftInputType, str] = {}
        self.last_status = DraftSaveStatus()

    @staticmethod
    def _key(input_type: DraftInputType) -> str:
        return f"{DRAFT_KEY_PREFIX}{input_type.value}"

    def on_input_changed(self, content: str, input_type: DraftInputType = DraftInputType.TEXT) -> None:
        """
        Record an input change and (re)start the debounce window.

        Must be called from a running event loop.
        """
        self._cancel_task(input_type)
        self._pending_content[input_type] = content
        self._pending[input_type] = asyncio.get_running_loop().create_task(
            self._save_after_delay(input_type)
        )

    async def _save_after_delay(self, input_type: DraftInputType) -> None:
        await asyncio.sleep(self.debounce_seconds)
        # Past this point the save runs to completion even if a new edit arrives
        self._pending.pop(input_type, None)
        content = self._pending_content.pop(input_type, None)
        if content is not None:
            await self.save_now(content, input_type)

    def _cancel_task(self, input_type: DraftInputType) -> None:
        task = self._pending.pop(input_type, None)
        if task is not None and not task.done():
            task.cancel()

    async def save_now(self, content: str, input_type: DraftInputType = DraftInputType.TEXT) -> DraftSaveStatus:
        """
        Persist content immediately, overwriting the previous draft.

        Whitespace-only content clears the draft instead. Never raises;
        the outcome is returned and kept in ``last_status``.
        """
        try:
            if not content.strip():
                await self.store.delete(self._key(input_type))
                debug_log(f"[DRAFTS] Cleared empty {input_type.value} draft")
            else:
                draft = Draft(content=content, input_type=input_type, modified_at=self._clock())
                await self.store.set(self._key(input_type), draft.to_record())
                debug_log(f"[DRAFTS] Saved {input_type.value} draft ({draft.character_count} chars)")
            self.last_status = DraftSaveStatus(state=SaveStatus.SAVED, saved_at=self._clock())
        except Exception as e:
            app_error = classify_error(e)
            warning(f"[DRAFTS] Draft save failed ({app_error.kind.value}): {e}")
            self.last_status = DraftSaveStatus(state=SaveStatus.FAILED, error=app_error)
        return self.last_status

    async def flush(self) -> None:
        """Write every pending edit now instead of waiting for its window."""
        for input_type in list(self._pending):
            self._cancel_task(input_type)
            content = self._pending_content.pop(input_type, None)
            if content is not None:
                await self.save_now(content, input_type)

    def cancel_pending(self) -> None:
        """Drop pending edits without saving them."""
        for input_type in list(self._pending):
            self._cancel_task(input_type)
        self._pending_content.clear()

    def has_pending(self, input_type: DraftInputType | None = None) -> bool:
        if input_type is None:
            return bool(self._pending)
        return input_type in self._pending

    async def get_draft(self, input_type: DraftInputType = DraftInputType.TEXT) -> Draft | None:
        """Stored draft for input_type, or None if missing, unreadable or empty."""
        try:
            record = await self.store.get(self._key(input_type))
        except Exception as e:
            warning(f"[DRAFTS] Could not read {input_type.value} draft: {e}")
            return None
        if not record:
            return None
        try:
            draft = Draft.from_record(record)
        except (KeyError, TypeError, ValueError) as e:
            warning(f"[DRAFTS] Discarding malformed {input_type.value} draft: {e}")
            return None
        return draft if draft.content.strip() else None

    async def offer_restore(self, input_type: DraftInputType, live_input: str = "") -> Draft | None:
        """
        Draft to offer for restoration on a fresh input context.

        Returns the stored draft only when the live input is empty and the
        draft is younger than max_age. Stale drafts are cleared. Nothing is
        applied to the input; the caller decides.
        """
        if live_input.strip():
            return None
        draft = await self.get_draft(input_type)
        if draft is None:
            return None
        if self._clock() - draft.modified_at > self.max_age:
            debug_log(f"[DRAFTS] Discarding stale {input_type.value} draft from {draft.modified_at.isoformat()}")
            await self.clear(input_type)
            return None
        return draft

    async def clear(self, input_type: DraftInputType = DraftInputType.TEXT) -> None:
        """Cancel any pending save and delete the stored draft (e.g. after a successful summary)."""
        self._cancel_task(input_type)
        self._pending_content.pop(input_type, None)
        try:
            await self.store.delete(self._key(input_type))
        except Exception as e:
            app_error = classify_error(e)
            warning(f"[DRAFTS] Draft clear failed ({app_error.kind.value}): {e}")
            self.last_status = DraftSaveStatus(state=SaveStatus.FAILED, error=app_error)
