"""
Process-start sequence for the store.

    open_store(config)  -> EntityStore over the configured SQLite file
    run_startup(store)  -> seed first-run defaults, then sweep the trash

Both steps run to completion before the caller gets the store back; a
failure propagates and the process is considered not started.
"""

from __future__ import annotations

import logging

from storage.entity_store import EntityStore
from storage.keyvalue import SqliteKeyValueStore
from storage.reclamation import sweep_expired_projects
from utils.config import StoreConfig
from utils.steps import StepLog

logger = logging.getLogger(__name__)


def open_store(config: StoreConfig | None = None) -> EntityStore:
    """Open the SQLite-backed store described by *config*."""
    config = config or StoreConfig.from_env()
    logger.debug("Opening store at %s", config.db_path)
    return EntityStore(SqliteKeyValueStore(config.db_path))


def run_startup(store: EntityStore, retention_days: int | None = None,
                step_log: StepLog | None = None) -> StepLog:
    """Seed defaults and purge expired trash once.

    Returns:
        The StepLog holding a report for ``seed_defaults`` and ``trash_sweep``.
    """
    log = step_log or StepLog()
    retention = retention_days if retention_days is not None else StoreConfig.from_env().trash_retention_days

    report = log.start_step("seed_defaults")
    try:
        seeded = store.initialize_defaults()
    except Exception as exc:
        log.fail_step("seed_defaults", exc)
        raise
    report.items_processed = len(seeded)
    for key in (store.keys.projects, store.keys.units):
        if key not in seeded:
            report.add_skip("already_done", "collection already stored", item=key)
    log.finish_step("seed_defaults", report)

    log.start_step("trash_sweep")
    try:
        sweep = sweep_expired_projects(store, retention_days=retention)
    except Exception as exc:
        log.fail_step("trash_sweep", exc)
        raise
    log.finish_step("trash_sweep", sweep)
    return log
