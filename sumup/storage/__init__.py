"""
Storage Package

Opaque key-value persistence used by the quota tracker and draft manager.
"""

from sumup.storage.key_value_store import InMemoryStore, JsonFileStore, KeyValueStore

__all__ = ['KeyValueStore', 'JsonFileStore', 'InMemoryStore']
