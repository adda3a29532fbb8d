from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import clickhouse_connect
from clickhouse_connect.driver.exceptions import ClickHouseError

from .errors import SinkError
from .models import COLUMNS, CanonicalRow

log = logging.getLogger("ipfix_agent.clickhouse")

TABLE_DDL = """
CREATE TABLE IF NOT EXISTS {table}
(
    insertionTime Int64,
    clientMac UInt64,
    clientIPv4 IPv4,
    clientIPv6 IPv6,
    clientPort UInt16,
    serverIPv4 IPv4,
    serverIPv6 IPv6,
    serverPort UInt16,
    protocol UInt8,
    packets UInt32,
    bytes UInt32,
    isDownload Bool
)
ENGINE = MergeTree
ORDER BY insertionTime
"""


class ClickHouseRowWriter:
    """
    RowWriter backed by clickhouse-connect over the HTTP interface.

    The client is created on first use, so the collector starts even when
    the store is down. After a failed attempt the client is discarded and
    rebuilt on the next one.

    attempts
      Insert tries per batch before SinkError is raised.

    backoff_seconds
      Sleep before retry n is n * backoff_seconds. Runs in the sink's
      worker thread, never on the event loop.
    """

    def __init__(
        self,
        url: str,
        table: str = "ipfix",
        database: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        attempts: int = 3,
        backoff_seconds: float = 1.0,
        connect_timeout: int = 5,
        send_receive_timeout: int = 20,
        client_factory: Callable[..., Any] = clickhouse_connect.get_client,
    ):
        self.url = url
        self.table = table
        self.attempts = max(1, int(attempts))
        self.backoff_seconds = float(backoff_seconds)

        self._client_kwargs: Dict[str, Any] = {
            "dsn": url,
            "connect_timeout": connect_timeout,
            "send_receive_timeout": send_receive_timeout,
        }
        if database:
            self._client_kwargs["database"] = database
        if username:
            self._client_kwargs["username"] = username
        if password:
            self._client_kwargs["password"] = password

        self._factory = client_factory
        self._client: Any = None

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = self._factory(**self._client_kwargs)
        return self._client

    def _discard_client(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            try:
                client.close()
            except Exception:
                log.debug("error closing clickhouse client", exc_info=True)

    def insert(self, rows: List[CanonicalRow]) -> None:
        data = [row.as_columns() for row in rows]
        last_exc: Optional[BaseException] = None

        for attempt in range(1, self.attempts + 1):
            try:
                self._get_client().insert(self.table, data, column_names=COLUMNS)
                return
            except (ClickHouseError, OSError) as exc:
                last_exc = exc
                self._discard_client()
                log.warning(
                    "insert of %d rows into %s failed (attempt %d/%d): %s",
                    len(rows),
                    self.table,
                    attempt,
                    self.attempts,
                    exc,
                )
                if attempt < self.attempts and self.backoff_seconds > 0:
                    time.sleep(self.backoff_seconds * attempt)

        raise SinkError(f"insert into {self.table} failed after {self.attempts} attempts") from last_exc

    def create_table(self) -> None:
        try:
            self._get_client().command(TABLE_DDL.format(table=self.table))
        except (ClickHouseError, OSError) as exc:
            self._discard_client()
            raise SinkError(f"could not create table {self.table}: {exc}") from exc
        log.info("ensured table %s exists", self.table)

    def close(self) -> None:
        self._discard_client()
