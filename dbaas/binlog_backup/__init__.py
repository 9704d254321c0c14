"""
binlog-backup - Full + incremental MySQL backups driven by binlog coordinates.

This package backs up a MySQL 8.x server into a destination directory:
- A full snapshot (mysqldump) records the binlog coordinate it was taken at
- Incremental runs export the binlog range written since the last run
- Recovery replays the full snapshot, then every incremental in order

Architecture:
    ┌──────────────┐     ┌──────────────┐     ┌──────────────────┐
    │  Full backup │────▶│ PositionStore│◀───▶│Incremental backup│
    │  (mysqldump) │     │ (binlog_index)     │  (mysqlbinlog)   │
    └──────┬───────┘     └──────────────┘     └────────┬─────────┘
           │                                           │
           ▼                                           ▼
    ┌─────────────────────────────────────────────────────────┐
    │        Destination dir: *_full_backup.sql, *_inc_bak.sql │
    └─────────────────────────────┬───────────────────────────┘
                                  │
                                  ▼
                           ┌─────────────┐
                           │  Recovery   │
                           │   (mysql)   │
                           └─────────────┘

Invariants:
    - A destination holds at most one full artifact
    - The position record only ever holds the latest exported coordinate
    - The position record advances once per successful incremental batch
    - Recovery never touches the position record

How to change safely:
    - Keep artifact names sortable by creation time
    - Keep the position record format "<segment>:<offset>"
    - Test full -> incremental -> recover cycles after any change

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
