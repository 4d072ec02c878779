"""
Shared fixtures for the SumUp engine tests.

SUMUP_HOME is pointed at a temporary directory before any sumup module is
imported, so log files and stores never touch the real user profile.
"""

import os
import tempfile

os.environ.setdefault('SUMUP_HOME', tempfile.mkdtemp(prefix='sumup-tests-'))

from datetime import datetime, timezone

import pytest
from fakes import FakeBackend, FakeClock

from sumup.quota import QuotaTracker
from sumup.storage import InMemoryStore


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def quota(memory_store, clock):
    return QuotaTracker(memory_store, daily_cap=50, clock=clock)


@pytest.fixture
def backend():
    return FakeBackend()
