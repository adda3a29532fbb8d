import ipaddress
import struct
import pytest

from ipfix_agent.core.capability_base import CapabilityContext
from ipfix_agent.core.counters import TrafficCounters
from ipfix_agent.core.errors import SinkError
from ipfix_agent.core.identity import EndpointIdentityCache
from ipfix_agent.core.pipeline import FlowPipeline
from ipfix_agent.core.sink import BatchedSink

# sourceMacAddress, sourceIPv4Address, sourceTransportPort,
# destinationIPv4Address, destinationTransportPort, protocolIdentifier,
# packetDeltaCount, octetDeltaCount, flowDirection
FLOW_TEMPLATE = [(56, 6), (8, 4), (7, 2), (12, 4), (11, 2), (4, 1), (2, 4), (1, 4), (61, 1)]


class FakeWriter:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.batches = []
        self.calls = 0

    def insert(self, rows):
        self.calls += 1
        if self.fail:
            raise SinkError("store unavailable")
        self.batches.append(list(rows))


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class IPFIXBuilder:
    """
    Builds IPFIX messages with one template set and one data set.
    """

    def record(self, src_mac, src, src_port, dst, dst_port, proto=6, packets=1, bytes_=100, direction=1) -> bytes:
        rec = bytes.fromhex(src_mac.replace(":", ""))
        rec += ipaddress.IPv4Address(src).packed + struct.pack("!H", src_port)
        rec += ipaddress.IPv4Address(dst).packed + struct.pack("!H", dst_port)
        rec += struct.pack("!B", proto)
        rec += struct.pack("!II", packets, bytes_)
        rec += struct.pack("!B", direction)
        return rec

    def template_set(self, template_id=256, fields=FLOW_TEMPLATE) -> bytes:
        rec = struct.pack("!HH", template_id, len(fields))
        for ie, flen in fields:
            rec += struct.pack("!HH", ie, flen)
        return struct.pack("!HH", 2, 4 + len(rec)) + rec

    def data_set(self, records, template_id=256) -> bytes:
        body = b"".join(records)
        return struct.pack("!HH", template_id, 4 + len(body)) + body

    def message(self, *sets: bytes, obs_domain: int = 1, version: int = 10) -> bytes:
        body = b"".join(sets)
        header = struct.pack("!HHIII", version, 16 + len(body), 1, 1, obs_domain)
        return header + body

    def flows(self, *records: bytes, template_id=256) -> bytes:
        return self.message(self.template_set(template_id), self.data_set(records, template_id))


@pytest.fixture
def ipfix():
    return IPFIXBuilder()


@pytest.fixture
def counters():
    return TrafficCounters()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def writer():
    return FakeWriter()


@pytest.fixture
def sink(writer, counters, clock):
    return BatchedSink(writer, max_bytes=1024 * 1024, max_rows=1000, period=5.0, counters=counters, clock=clock)


@pytest.fixture
def identity():
    return EndpointIdentityCache()


@pytest.fixture
def pipeline(identity, counters, sink):
    return FlowPipeline(identity=identity, counters=counters, sink=sink)


@pytest.fixture
def ctx(pipeline):
    return CapabilityContext(pipeline=pipeline)


@pytest.fixture
def failing_writer():
    return FakeWriter(fail=True)
