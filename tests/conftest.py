from __future__ import annotations

import pytest

from auto_archive import config
from auto_archive.archive.context import RunContext
from auto_archive.domain.models import Frequency
from fakes import FakeProvisioner, FakeSource, MemoryLedger, MemoryRunLog


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    config._load_settings_cached.cache_clear()
    yield
    config._load_settings_cached.cache_clear()


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def provisioner() -> FakeProvisioner:
    return FakeProvisioner()


@pytest.fixture
def ledger() -> MemoryLedger:
    return MemoryLedger()


@pytest.fixture
def run_log() -> MemoryRunLog:
    return MemoryRunLog()


@pytest.fixture
def context() -> RunContext:
    return RunContext.start(Frequency.MONTHLY, run_id="Run_test")
