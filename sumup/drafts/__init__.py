"""
Drafts Package

Debounced auto-save of unsent user input with crash recovery.
"""

from sumup.drafts.draft_manager import (
    Draft,
    DraftInputType,
    DraftManager,
    DraftSaveStatus,
    SaveStatus,
)

__all__ = ['Draft', 'DraftInputType', 'DraftManager', 'DraftSaveStatus', 'SaveStatus']
