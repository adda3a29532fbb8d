import ipaddress

import pytest
from clickhouse_connect.driver.exceptions import OperationalError

from ipfix_agent.core.clickhouse import ClickHouseRowWriter
from ipfix_agent.core.errors import SinkError
from ipfix_agent.core.models import COLUMNS, CanonicalRow


class FakeClient:
    def __init__(self, failures: int = 0):
        self.failures = failures
        self.inserts = []
        self.commands = []
        self.closed = False

    def insert(self, table, data, column_names=None):
        if self.failures:
            self.failures -= 1
            raise OperationalError("connection refused")
        self.inserts.append((table, data, column_names))

    def command(self, sql):
        self.commands.append(sql)

    def close(self):
        self.closed = True


class Factory:
    def __init__(self, clients):
        self.clients = list(clients)
        self.kwargs = []

    def __call__(self, **kwargs):
        self.kwargs.append(kwargs)
        return self.clients.pop(0)


def make_row() -> CanonicalRow:
    return CanonicalRow.build(
        client_mac="aa:bb:cc:dd:ee:ff",
        client_addr=ipaddress.ip_address("10.0.0.5"),
        client_port=5000,
        server_addr=ipaddress.ip_address("93.184.216.34"),
        server_port=443,
        protocol=6,
        packets=1,
        bytes=500,
        is_download=False,
        insertion_time=1700000000,
    )


def test_insert_uses_table_columns():
    client = FakeClient()
    factory = Factory([client])
    writer = ClickHouseRowWriter("http://ch:8123", table="ipfix", client_factory=factory)

    writer.insert([make_row()])

    table, data, columns = client.inserts[0]
    assert table == "ipfix"
    assert columns == COLUMNS
    assert data[0][0] == 1700000000
    assert data[0][1] == 0xAABBCCDDEEFF
    assert factory.kwargs[0]["dsn"] == "http://ch:8123"
    assert factory.kwargs[0]["connect_timeout"] == 5
    assert factory.kwargs[0]["send_receive_timeout"] == 20


def test_client_is_created_lazily():
    factory = Factory([FakeClient()])
    ClickHouseRowWriter("http://ch:8123", client_factory=factory)

    assert factory.kwargs == []


def test_retry_rebuilds_client_then_succeeds():
    broken = FakeClient(failures=1)
    healthy = FakeClient()
    factory = Factory([broken, healthy])
    writer = ClickHouseRowWriter("http://ch:8123", attempts=3, backoff_seconds=0, client_factory=factory)

    writer.insert([make_row()])

    assert broken.closed
    assert len(healthy.inserts) == 1


def test_exhausted_retries_raise_sink_error():
    factory = Factory([FakeClient(failures=1), FakeClient(failures=1)])
    writer = ClickHouseRowWriter("http://ch:8123", attempts=2, backoff_seconds=0, client_factory=factory)

    with pytest.raises(SinkError):
        writer.insert([make_row()])


def test_create_table_ddl_names_every_column():
    client = FakeClient()
    writer = ClickHouseRowWriter("http://ch:8123", table="flows", client_factory=Factory([client]))

    writer.create_table()

    ddl = client.commands[0]
    assert "CREATE TABLE IF NOT EXISTS flows" in ddl
    for column in COLUMNS:
        assert column in ddl
