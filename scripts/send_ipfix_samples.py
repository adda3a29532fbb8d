import ipaddress
import random
import socket
import struct
import time

# sourceMacAddress, sourceIPv4Address, sourceTransportPort,
# destinationIPv4Address, destinationTransportPort, protocolIdentifier,
# packetDeltaCount, octetDeltaCount, flowDirection
TEMPLATE = [(56, 6), (8, 4), (7, 2), (12, 4), (11, 2), (4, 1), (2, 4), (1, 4), (61, 1)]
TEMPLATE_ID = 256


def template_set() -> bytes:
    rec = struct.pack("!HH", TEMPLATE_ID, len(TEMPLATE))
    for ie, flen in TEMPLATE:
        rec += struct.pack("!HH", ie, flen)
    return struct.pack("!HH", 2, 4 + len(rec)) + rec


def record(mac, src, sport, dst, dport, packets, octets, direction) -> bytes:
    return (
        bytes.fromhex(mac.replace(":", ""))
        + ipaddress.IPv4Address(src).packed
        + struct.pack("!H", sport)
        + ipaddress.IPv4Address(dst).packed
        + struct.pack("!HBIIB", dport, 6, packets, octets, direction)
    )


def message(seq: int, *records: bytes) -> bytes:
    data = b"".join(records)
    body = template_set() + struct.pack("!HH", TEMPLATE_ID, 4 + len(data)) + data
    return struct.pack("!HHIII", 10, 16 + len(body), int(time.time()), seq, 1) + body


def main():
    host = "127.0.0.1"
    port = 4739
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    clients = [("10.0.0.5", "aa:bb:cc:dd:ee:01"), ("10.0.0.6", "aa:bb:cc:dd:ee:02")]
    router_mac = "02:00:00:00:00:01"
    server = "93.184.216.34"

    for seq in range(200):
        ip, mac = random.choice(clients)
        sport = random.randint(49152, 65535)
        up = record(mac, ip, sport, server, 443, 10, 1200, 1)
        down = record(router_mac, server, 443, ip, sport, 40, random.choice([2000, 20000, 200000]), 0)
        sock.sendto(message(seq, up, down), (host, port))
        time.sleep(0.02)


if __name__ == "__main__":
    main()
