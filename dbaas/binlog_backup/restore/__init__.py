"""
Recovery for binlog-backup.

Replays a destination (one full artifact plus its incremental chain) into
the server. Replay is sequential, fail-fast and not transactional.
"""

from .recovery import RecoveryOrchestrator, RecoveryResult

__all__ = ["RecoveryOrchestrator", "RecoveryResult"]
