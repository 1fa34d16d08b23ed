"""
Pytest fixtures for the compliance tracker tests.

Provides an in-memory key-value backend, a controllable clock, an empty
store, and a store pre-loaded with the two-unit scenario used across the
cascade tests:

    units:    U1 "Alpha Division", U2 "Bravo Division"
    groups:   G1 "Core Programmes"
    projects: P1 "Training"   (unitId=U1, groupId=G1, fiscalYear 2569)
              P2 "Logistics"  (unitId=U2, fiscalYear 2568)
    reports:  R1 on P1 by U1, R2 on P2 by U2, R3 on P1 by U1 (older)
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from storage.entity_store import EntityStore  # noqa: E402
from storage.keyvalue import MemoryKeyValueStore  # noqa: E402
from storage.models import Project, ProjectGroup, Report, Unit  # noqa: E402

NOW_SECONDS = 1_760_000_000.0
NOW_MS = int(NOW_SECONDS * 1000)
DAY_MS = 24 * 60 * 60 * 1000


class FakeClock:
    """Callable clock returning a settable time in seconds."""

    def __init__(self, now: float = NOW_SECONDS) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance_days(self, days: float) -> None:
        self.now += days * 24 * 60 * 60


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fallbacks():
    """List collecting (key, reason) pairs from the decode diagnostic hook."""
    return []


@pytest.fixture
def store(kv, clock, fallbacks):
    return EntityStore(kv, clock=clock,
                       on_fallback=lambda key, reason: fallbacks.append((key, reason)))


@pytest.fixture
def scenario_store(store):
    store.save_unit(Unit(id="U1", name="Alpha Division", password="pw1"))
    store.save_unit(Unit(id="U2", name="Bravo Division", password="pw2"))
    store.save_group(ProjectGroup(id="G1", name="Core Programmes"))
    # Replace the built-in projects with the scenario's own.
    store.kv.set(store.keys.projects, "[]")
    store.save_project(Project(id="P1", name="Training", unit_id="U1",
                               group_id="G1", fiscal_year="2569"))
    store.save_project(Project(id="P2", name="Logistics", unit_id="U2",
                               fiscal_year="2568"))
    store.save_report(Report(
        id="R1", unit_id="U1", unit_name="Alpha Division",
        project_id="P1", project_name="Training",
        status="ontrack", progress=40, details="Phase one complete",
        problems="-", report_date_end="2026-03-31T00:00:00+00:00",
    ))
    store.save_report(Report(
        id="R2", unit_id="U2", unit_name="Bravo Division",
        project_id="P2", project_name="Logistics",
        status="delayed", progress=10, details="Awaiting supplies",
        problems="Vendor delay", report_date_end="2026-02-28T00:00:00+00:00",
    ))
    store.save_report(Report(
        id="R3", unit_id="U1", unit_name="Alpha Division",
        project_id="P1", project_name="Training",
        status="risk", progress=20, details="Kick-off",
        problems="-", report_date_end="2026-01-31T00:00:00+00:00",
    ))
    return store
