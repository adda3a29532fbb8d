from __future__ import annotations

from enum import IntEnum
from typing import Dict, Iterable, Tuple, Union

from .decoder import FieldSpec

# Enterprise specific elements are keyed by (enterprise number, element id).
FieldKey = Union[int, Tuple[int, int]]
FieldMap = Dict[FieldKey, bytes]


class IPFIXField(IntEnum):
    """
    IANA information elements the collector reads.
    """

    OCTET_DELTA_COUNT = 1
    PACKET_DELTA_COUNT = 2
    PROTOCOL_IDENTIFIER = 4
    SOURCE_TRANSPORT_PORT = 7
    SOURCE_IPV4_ADDRESS = 8
    DESTINATION_TRANSPORT_PORT = 11
    DESTINATION_IPV4_ADDRESS = 12
    SOURCE_IPV6_ADDRESS = 27
    DESTINATION_IPV6_ADDRESS = 28
    SOURCE_MAC_ADDRESS = 56
    FLOW_DIRECTION = 61
    POST_SOURCE_MAC_ADDRESS = 81


def field_key(spec: FieldSpec) -> FieldKey:
    if spec.enterprise is None:
        return spec.ie_id
    return (spec.enterprise, spec.ie_id)


def build_field_map(record: Iterable[Tuple[FieldSpec, bytes]]) -> FieldMap:
    """
    Index one data record by field identity. A field repeated within the
    record keeps its last value.
    """
    return {field_key(spec): value for spec, value in record}
