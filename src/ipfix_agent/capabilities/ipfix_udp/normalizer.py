from __future__ import annotations

import ipaddress
from typing import Optional

from ipfix_agent.core.errors import InvalidFieldError, MissingFieldError
from ipfix_agent.core.models import FlowObservation, IPAddress

from .fields import FieldMap, IPFIXField


def _lookup(fields: FieldMap, primary: IPFIXField, fallback: Optional[IPFIXField] = None) -> bytes:
    value = fields.get(int(primary))
    if value is None and fallback is not None:
        value = fields.get(int(fallback))
    if value is None:
        raise MissingFieldError(primary.name.lower())
    return value


def _uint(fields: FieldMap, key: IPFIXField, bits: int) -> int:
    """
    Unsigned big endian integer. Exporters may use reduced size encoding,
    so any width is accepted as long as the value fits.
    """
    raw = _lookup(fields, key)
    if not raw:
        raise InvalidFieldError(key.name.lower(), "empty value")
    value = int.from_bytes(raw, "big")
    if value >> bits:
        raise InvalidFieldError(key.name.lower(), f"value {value} does not fit in {bits} bits")
    return value


def _address(fields: FieldMap, primary: IPFIXField, fallback: IPFIXField) -> IPAddress:
    raw = _lookup(fields, primary, fallback)
    if len(raw) == 4:
        return ipaddress.IPv4Address(raw)
    if len(raw) == 16:
        return ipaddress.IPv6Address(raw)
    raise InvalidFieldError(primary.name.lower(), f"{len(raw)} byte address")


def _mac(fields: FieldMap, primary: IPFIXField, fallback: IPFIXField) -> str:
    raw = _lookup(fields, primary, fallback)
    if len(raw) != 6:
        raise InvalidFieldError(primary.name.lower(), f"{len(raw)} byte MAC address")
    return ":".join(f"{b:02x}" for b in raw)


def normalize(fields: FieldMap) -> FlowObservation:
    """
    Extract a FlowObservation from one data record's field map.

    MAC and address fields fall back to their alternate element when the
    primary one is absent:
      sourceMacAddress         -> postSourceMacAddress
      sourceIPv4Address        -> sourceIPv6Address
      destinationIPv4Address   -> destinationIPv6Address

    Raises MissingFieldError or InvalidFieldError. The caller drops the
    record; nothing here has side effects.
    """
    return FlowObservation(
        src_mac=_mac(fields, IPFIXField.SOURCE_MAC_ADDRESS, IPFIXField.POST_SOURCE_MAC_ADDRESS),
        src_addr=_address(fields, IPFIXField.SOURCE_IPV4_ADDRESS, IPFIXField.SOURCE_IPV6_ADDRESS),
        src_port=_uint(fields, IPFIXField.SOURCE_TRANSPORT_PORT, 16),
        dst_addr=_address(fields, IPFIXField.DESTINATION_IPV4_ADDRESS, IPFIXField.DESTINATION_IPV6_ADDRESS),
        dst_port=_uint(fields, IPFIXField.DESTINATION_TRANSPORT_PORT, 16),
        protocol=_uint(fields, IPFIXField.PROTOCOL_IDENTIFIER, 8),
        packets=_uint(fields, IPFIXField.PACKET_DELTA_COUNT, 32),
        bytes=_uint(fields, IPFIXField.OCTET_DELTA_COUNT, 32),
        direction=_uint(fields, IPFIXField.FLOW_DIRECTION, 8),
    )
