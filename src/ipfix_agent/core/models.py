from __future__ import annotations

import ipaddress
import time
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

EMPTY_MAC = "00:00:00:00:00:00"

IPV4_UNSPECIFIED = ipaddress.IPv4Address(0)
IPV6_UNSPECIFIED = ipaddress.IPv6Address(0)

# Column names of the durable table, in insert order.
COLUMNS = [
    "insertionTime",
    "clientMac",
    "clientIPv4",
    "clientIPv6",
    "clientPort",
    "serverIPv4",
    "serverIPv6",
    "serverPort",
    "protocol",
    "packets",
    "bytes",
    "isDownload",
]

# RowBinary width of one row: Int64, UInt64, IPv4, IPv6, UInt16, IPv4,
# IPv6, UInt16, UInt8, UInt32, UInt32, Bool.
ROW_SIZE = 8 + 8 + 4 + 16 + 2 + 4 + 16 + 2 + 1 + 4 + 4 + 1


def mac_to_int(mac: str) -> int:
    """
    Parse "aa:bb:cc:dd:ee:ff" into its 48 bit integer value.
    """
    return int(mac.replace(":", ""), 16)


def split_address(addr: IPAddress) -> Tuple[ipaddress.IPv4Address, ipaddress.IPv6Address]:
    """
    Spread one address over the (IPv4, IPv6) column pair.
    The unused slot holds the unspecified address of its family.
    """
    if isinstance(addr, ipaddress.IPv4Address):
        return addr, IPV6_UNSPECIFIED
    return IPV4_UNSPECIFIED, addr


@dataclass(frozen=True)
class FlowObservation:
    """
    One decoded IPFIX data record, reduced to the fields the collector needs.

    Fields:
      src_addr, dst_addr
        IPv4Address or IPv6Address, never mixed within one side.

      src_port, dst_port
        Transport ports.

      src_mac
        Source MAC as reported by the exporter, "aa:bb:cc:dd:ee:ff".

      protocol
        IP protocol number.

      packets, bytes
        Delta counters for this record.

      direction
        flowDirection as exported. 0 is ingress at the observation point.
    """

    src_addr: IPAddress
    dst_addr: IPAddress
    src_port: int
    dst_port: int
    src_mac: str
    protocol: int
    packets: int
    bytes: int
    direction: int


@dataclass(frozen=True)
class CanonicalRow:
    """
    Persistence ready representation of one observation.

    Built once by the pipeline and handed to the sink. Never mutated.
    """

    insertion_time: int
    client_mac: int
    client_ipv4: ipaddress.IPv4Address
    client_ipv6: ipaddress.IPv6Address
    client_port: int
    server_ipv4: ipaddress.IPv4Address
    server_ipv6: ipaddress.IPv6Address
    server_port: int
    protocol: int
    packets: int
    bytes: int
    is_download: bool

    @classmethod
    def build(
        cls,
        client_mac: str,
        client_addr: IPAddress,
        client_port: int,
        server_addr: IPAddress,
        server_port: int,
        protocol: int,
        packets: int,
        bytes: int,
        is_download: bool,
        insertion_time: Optional[int] = None,
    ) -> "CanonicalRow":
        client_ipv4, client_ipv6 = split_address(client_addr)
        server_ipv4, server_ipv6 = split_address(server_addr)

        return cls(
            insertion_time=int(time.time()) if insertion_time is None else int(insertion_time),
            client_mac=mac_to_int(client_mac),
            client_ipv4=client_ipv4,
            client_ipv6=client_ipv6,
            client_port=client_port,
            server_ipv4=server_ipv4,
            server_ipv6=server_ipv6,
            server_port=server_port,
            protocol=protocol,
            packets=packets,
            bytes=bytes,
            is_download=is_download,
        )

    def serialized_size(self) -> int:
        return ROW_SIZE

    def as_columns(self) -> List[Any]:
        """
        Values in COLUMNS order, ready for a columnar insert.
        """
        return [
            self.insertion_time,
            self.client_mac,
            self.client_ipv4,
            self.client_ipv6,
            self.client_port,
            self.server_ipv4,
            self.server_ipv6,
            self.server_port,
            self.protocol,
            self.packets,
            self.bytes,
            self.is_download,
        ]
