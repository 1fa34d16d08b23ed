"""
Backup and restore script for the compliance tracker store.

Exports all four collections into a timestamped JSON backup document, or
restores the store from one.  A restore validates the whole document first
and leaves the store untouched when the document is rejected.

Usage:
    python scripts/backup_store.py                       # backup with defaults
    python scripts/backup_store.py --db /data/tracker.sqlite --dest /backups
    python scripts/backup_store.py --keep 7              # retain last 7 backups
    python scripts/backup_store.py --restore backups/tracker_backup_20261019_083000.json

Backup filename format: tracker_backup_YYYYMMDD_HHMMSS.json
"""

import argparse
import logging
import re
import sqlite3
import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from storage.backup import export_json, import_all  # noqa: E402
from storage.entity_store import EntityStore  # noqa: E402
from storage.keyvalue import SqliteKeyValueStore  # noqa: E402
from utils.common import format_bytes  # noqa: E402
from utils.config import StoreConfig  # noqa: E402

_logger = logging.getLogger("backup_store")

# Pattern that backup filenames must match for pruning
_BACKUP_RE = re.compile(r"^tracker_backup_\d{8}_\d{6}\.json$")


# ── Core functions ────────────────────────────────────────────────────────────

def backup_store(store: EntityStore, dest_dir: Path) -> Path:
    """Write a timestamped backup document of *store* into *dest_dir*.

    Args:
        store: Store to export.
        dest_dir: Directory where the backup file will be written.

    Returns:
        Path to the newly created backup file.

    Raises:
        OSError: If *dest_dir* cannot be created or written.
    """
    dest_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    backup_path = dest_dir / f"tracker_backup_{timestamp}.json"

    _logger.info("Starting backup -> %s", backup_path)
    backup_path.write_text(export_json(store), encoding="utf-8")
    _logger.info("Backup complete: %s (%s)", backup_path,
                 format_bytes(backup_path.stat().st_size))
    return backup_path


def restore_store(store: EntityStore, backup_path: Path) -> bool:
    """Overwrite *store* from the backup document at *backup_path*.

    Returns:
        True if the document was accepted and written, False otherwise.

    Raises:
        FileNotFoundError: If *backup_path* does not exist.
    """
    if not backup_path.exists():
        raise FileNotFoundError(f"Backup file not found: {backup_path}")
    result = import_all(store, backup_path.read_text(encoding="utf-8"))
    if not result:
        _logger.error("Restore rejected: %s", result.error)
        return False
    _logger.info("Restored %s", ", ".join(f"{n} {k}" for k, n in result.counts.items()))
    return True


def prune_old_backups(dest_dir: Path, keep: int) -> list[Path]:
    """Delete all but the *keep* newest backup documents in *dest_dir*.

    Files whose names do not follow the backup naming scheme are ignored.

    Returns:
        The deleted paths, oldest first.

    Raises:
        ValueError: If *keep* is less than 1.
    """
    if keep < 1:
        raise ValueError(f"--keep must be >= 1, got {keep}")

    # Names embed YYYYMMDD_HHMMSS, so name order is age order.
    backups = sorted(p for p in dest_dir.iterdir() if _BACKUP_RE.match(p.name))
    stale = backups[:max(0, len(backups) - keep)]
    for path in stale:
        _logger.info("Removing old backup %s", path.name)
        path.unlink()
    if stale:
        _logger.info("Kept the %d newest backup(s), removed %d", keep, len(stale))
    return stale


# ── CLI ───────────────────────────────────────────────────────────────────────

def _build_parser() -> argparse.ArgumentParser:
    cfg = StoreConfig.from_env()
    parser = argparse.ArgumentParser(
        description="Write a timestamped JSON backup of the tracker store, or restore one.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--db", type=Path, default=cfg.db_path,
                        help="SQLite store to back up or restore into.")
    parser.add_argument("--dest", type=Path, default=cfg.backup_dir,
                        help="Directory for backup documents.")
    parser.add_argument("--keep", type=int, default=0, metavar="N",
                        help="After a backup, keep only the N newest documents (0 keeps all).")
    parser.add_argument("--restore", type=Path, default=None, metavar="FILE",
                        help="Replace the store contents with FILE instead of backing up.")
    return parser


def _run(store: EntityStore, args: argparse.Namespace) -> int:
    if args.restore is not None:
        try:
            return 0 if restore_store(store, args.restore) else 1
        except FileNotFoundError as exc:
            _logger.error("%s", exc)
            return 1

    try:
        backup_path = backup_store(store, dest_dir=args.dest)
        if args.keep > 0:
            prune_old_backups(args.dest, args.keep)
    except (OSError, ValueError) as exc:
        _logger.error("Backup failed: %s", exc)
        return 1
    _logger.info("Backup saved to %s", backup_path)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Back up or restore the store; returns the process exit code."""
    logging.basicConfig(format="%(asctime)s %(levelname)s %(message)s", level=logging.INFO)
    args = _build_parser().parse_args(argv)

    try:
        kv = SqliteKeyValueStore(args.db)
    except (OSError, sqlite3.Error) as exc:
        _logger.error("Cannot open store %s: %s", args.db, exc)
        return 1
    try:
        return _run(EntityStore(kv), args)
    finally:
        kv.close()


if __name__ == "__main__":
    sys.exit(main())
