"""
binlog-backup Test Suite.

This package contains:
- unit/: Unit tests (no MySQL server or client tools needed)
- integration/: Backup cycles against the in-memory catalog and fake tools
"""
