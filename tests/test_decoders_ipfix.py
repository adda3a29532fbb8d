import struct

import pytest

from ipfix_agent.capabilities.ipfix_udp.decoder import IPFIXDecoder
from ipfix_agent.core.errors import UnexpectedPacketError


def test_ipfix_template_and_data_decodes(ipfix):
    msg = ipfix.flows(
        ipfix.record("aa:bb:cc:dd:ee:ff", "10.0.0.1", 1234, "10.0.0.2", 53, proto=17, packets=5, bytes_=500),
    )

    message = IPFIXDecoder().decode(msg, exporter="1.2.3.4")

    assert message.version == 10
    assert message.obs_domain == 1
    records = [r for fs in message.flowsets for r in fs.records]
    assert len(records) == 1

    values = {spec.ie_id: raw for spec, raw in records[0]}
    assert values[8] == bytes([10, 0, 0, 1])
    assert values[12] == bytes([10, 0, 0, 2])
    assert struct.unpack("!H", values[7])[0] == 1234
    assert struct.unpack("!I", values[1])[0] == 500
    assert values[56] == bytes.fromhex("aabbccddeeff")


def test_templates_are_scoped_by_exporter(ipfix):
    decoder = IPFIXDecoder()
    decoder.decode(ipfix.message(ipfix.template_set()), exporter="1.2.3.4")

    data_only = ipfix.message(
        ipfix.data_set([ipfix.record("aa:bb:cc:dd:ee:ff", "10.0.0.1", 1, "10.0.0.2", 2)])
    )

    assert sum(len(fs.records) for fs in decoder.decode(data_only, exporter="1.2.3.4").flowsets) == 1
    assert sum(len(fs.records) for fs in decoder.decode(data_only, exporter="5.6.7.8").flowsets) == 0


def test_template_withdrawal(ipfix):
    decoder = IPFIXDecoder()
    decoder.decode(ipfix.message(ipfix.template_set()), exporter="e")
    assert len(decoder.cache) == 1

    withdraw = struct.pack("!HH", 256, 0)
    decoder.decode(ipfix.message(struct.pack("!HH", 2, 4 + len(withdraw)) + withdraw), exporter="e")
    assert len(decoder.cache) == 0


def test_options_data_is_not_yielded(ipfix):
    # options template 300: scope field observationDomainId, then exportedMessageTotalCount
    rec = struct.pack("!HHH", 300, 2, 1) + struct.pack("!HH", 149, 4) + struct.pack("!HH", 41, 8)
    options_set = struct.pack("!HH", 3, 4 + len(rec)) + rec
    data = struct.pack("!IQ", 1, 99)
    data_set = struct.pack("!HH", 300, 4 + len(data)) + data

    message = IPFIXDecoder().decode(ipfix.message(options_set, data_set), exporter="e")

    assert [fs.records for fs in message.flowsets if fs.set_id == 300] == [[]]


def test_variable_length_field(ipfix):
    tmpl = ipfix.template_set(fields=[(8, 4), (82, 65535)])
    data = bytes([10, 0, 0, 1]) + bytes([4]) + b"eth0"
    message = IPFIXDecoder().decode(ipfix.message(tmpl, ipfix.data_set([data])), exporter="e")

    records = [r for fs in message.flowsets for r in fs.records]
    assert len(records) == 1
    assert records[0][1][1] == b"eth0"


def test_enterprise_field_keeps_enterprise_number(ipfix):
    rec = struct.pack("!HH", 256, 1) + struct.pack("!HHI", 0x8000 | 12, 4, 29305)
    tmpl = struct.pack("!HH", 2, 4 + len(rec)) + rec
    message = IPFIXDecoder().decode(ipfix.message(tmpl, ipfix.data_set([bytes(4)])), exporter="e")

    spec, _ = message.flowsets[1].records[0][0]
    assert spec.ie_id == 12
    assert spec.enterprise == 29305


def test_netflow_v9_is_rejected(ipfix):
    with pytest.raises(UnexpectedPacketError):
        IPFIXDecoder().decode(ipfix.message(ipfix.template_set(), version=9))


def test_short_datagram_is_rejected():
    with pytest.raises(UnexpectedPacketError):
        IPFIXDecoder().decode(b"\x00\x0a\x00")
