import ipaddress

import pytest

from ipfix_agent.core.classifier import classify
from ipfix_agent.core.models import FlowObservation


def make_obs(direction: int) -> FlowObservation:
    return FlowObservation(
        src_addr=ipaddress.ip_address("93.184.216.34"),
        dst_addr=ipaddress.ip_address("10.0.0.5"),
        src_port=443,
        dst_port=5000,
        src_mac="11:22:33:44:55:66",
        protocol=6,
        packets=10,
        bytes=20000,
        direction=direction,
    )


def test_ingress_is_download_with_destination_as_client():
    roles = classify(make_obs(0))

    assert roles.is_download
    assert roles.client_addr == ipaddress.ip_address("10.0.0.5")
    assert roles.client_port == 5000
    assert roles.server_addr == ipaddress.ip_address("93.184.216.34")
    assert roles.server_port == 443
    assert roles.arrow == "<-"


@pytest.mark.parametrize("direction", [1, 2, 255])
def test_any_other_direction_is_upload_with_source_as_client(direction):
    roles = classify(make_obs(direction))

    assert not roles.is_download
    assert roles.client_addr == ipaddress.ip_address("93.184.216.34")
    assert roles.client_port == 443
    assert roles.server_addr == ipaddress.ip_address("10.0.0.5")
    assert roles.server_port == 5000
    assert roles.arrow == "->"
