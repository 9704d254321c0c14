"""
MySQL implementation of the LogCatalog protocol.

One MysqlServer is constructed per run and handed to every component that
needs the live server: version checks, binlog listing and the write tip.

Invariants:
    - One connection per run, opened lazily and closed by the caller
    - Driver errors never escape; they become ConnectionError
    - The password never appears in logs or error messages

How to change safely:
    - Test against every supported server minor version; the status
      statement changed name in 8.2
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import pymysql
from pymysql.cursors import DictCursor

from ..config import MysqlSettings
from ..errors import ConnectionError, ConsistencyError
from .base import LogCoordinate, parse_version

logger = logging.getLogger(__name__)

# SHOW MASTER STATUS was renamed in 8.2 and removed in 8.4
_BINARY_LOG_STATUS_SINCE = (8, 2, 0)


class MysqlServer:
    """Live MySQL server, read through PyMySQL.

    Attributes:
        settings: Connection settings

    Example:
        >>> with MysqlServer(MysqlSettings()) as server:
        ...     print(server.server_version(), server.current_tip())
    """

    def __init__(self, settings: MysqlSettings, connect_timeout: int = 10) -> None:
        """Initialize the server handle without connecting.

        Args:
            settings: MysqlSettings with credentials
            connect_timeout: Seconds to wait for the TCP connection
        """
        self.settings = settings
        self.connect_timeout = connect_timeout
        self._conn: Optional[pymysql.connections.Connection] = None
        self._version: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        """Whether a connection is open."""
        return self._conn is not None

    def connect(self) -> None:
        """Open the connection.

        Raises:
            ConnectionError: If the server is unreachable or rejects the login
        """
        if self._conn is not None:
            return

        try:
            self._conn = pymysql.connect(
                host=self.settings.host,
                port=self.settings.port,
                user=self.settings.user,
                password=self.settings.password,
                database="mysql",
                charset="utf8mb4",
                cursorclass=DictCursor,
                connect_timeout=self.connect_timeout,
            )
        except pymysql.MySQLError as e:
            raise ConnectionError(
                f"connect to mysql failed: {e}", address=self.settings.address
            ) from e

        logger.debug("Connected to MySQL", extra={"address": self.settings.address})

    def close(self) -> None:
        """Close the connection (safe to call twice)."""
        if self._conn is None:
            return
        try:
            self._conn.close()
        except pymysql.MySQLError as e:
            logger.debug(f"Error closing MySQL connection: {e}")
        finally:
            self._conn = None

    def __enter__(self) -> MysqlServer:
        self.connect()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def server_version(self) -> str:
        """Return SELECT VERSION()."""
        if self._version is None:
            row = self._fetch_one("SELECT VERSION() AS version")
            if not row or not row.get("version"):
                raise ConnectionError(
                    "MySQL returned no version", address=self.settings.address
                )
            self._version = str(row["version"])
        return self._version

    def list_segments(self) -> List[str]:
        """Return binlog file names from SHOW BINARY LOGS."""
        rows = self._fetch_all("SHOW BINARY LOGS")
        return [row["Log_name"] for row in rows]

    def current_tip(self) -> LogCoordinate:
        """Return the file and position the server is writing."""
        if parse_version(self.server_version()) >= _BINARY_LOG_STATUS_SINCE:
            row = self._fetch_one("SHOW BINARY LOG STATUS")
        else:
            row = self._fetch_one("SHOW MASTER STATUS")

        if not row or not row.get("File"):
            raise ConsistencyError("Binary logging is disabled on the server")

        return LogCoordinate(segment=row["File"], offset=int(row["Position"]))

    def _fetch_one(self, sql: str) -> Optional[Dict[str, Any]]:
        rows = self._fetch_all(sql)
        return rows[0] if rows else None

    def _fetch_all(self, sql: str) -> List[Dict[str, Any]]:
        self.connect()
        try:
            with self._conn.cursor() as cursor:
                cursor.execute(sql)
                return list(cursor.fetchall())
        except pymysql.MySQLError as e:
            raise ConnectionError(
                f"query '{sql}' failed: {e}", address=self.settings.address
            ) from e
