from __future__ import annotations

from collections import OrderedDict
from typing import Dict, Optional

from .models import EMPTY_MAC, IPAddress


class EndpointIdentityCache:
    """
    Learns which MAC address sits behind a local IP address.

    Upload records carry the true source MAC of the client, so they write
    the cache. Download records only carry the remote side's MAC, so they
    read the cache and fall back to EMPTY_MAC when the client has not
    uploaded anything yet.

    Owned by the ingestion task. Not thread safe.

    max_entries
      None keeps every address ever seen. With a bound, the least recently
      updated address is evicted when a new one is learned. Lookups do not
      refresh an entry.
    """

    def __init__(self, max_entries: Optional[int] = None):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._macs: "OrderedDict[IPAddress, str]" = OrderedDict()
        self.evicted = 0

    def resolve(self, client_addr: IPAddress, is_download: bool, observed_src_mac: str) -> str:
        """
        Return the MAC to attribute this observation to.
        """
        if is_download:
            return self._macs.get(client_addr, EMPTY_MAC)

        if self._macs.get(client_addr) != observed_src_mac:
            self._learn(client_addr, observed_src_mac)

        return observed_src_mac

    def lookup(self, addr: IPAddress) -> Optional[str]:
        return self._macs.get(addr)

    def snapshot(self) -> Dict[str, str]:
        return {str(addr): mac for addr, mac in self._macs.items()}

    def __len__(self) -> int:
        return len(self._macs)

    def _learn(self, addr: IPAddress, mac: str) -> None:
        self._macs[addr] = mac
        self._macs.move_to_end(addr)

        if self.max_entries is not None:
            while len(self._macs) > self.max_entries:
                self._macs.popitem(last=False)
                self.evicted += 1
