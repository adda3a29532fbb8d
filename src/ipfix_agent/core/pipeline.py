from __future__ import annotations

import logging
from typing import Any, Dict

from .classifier import classify
from .counters import TrafficCounters
from .identity import EndpointIdentityCache
from .models import CanonicalRow, FlowObservation
from .sink import BatchedSink

log = logging.getLogger("ipfix_agent.pipeline")


class FlowPipeline:
    """
    Protocol neutral path from FlowObservation to CanonicalRow.

    For each observation, in order:
      1. classify client and server sides
      2. resolve the client MAC through the identity cache
      3. count download bytes per MAC
      4. hand the row to the sink

    Runs inside the single ingestion task, which makes it the only writer of
    the identity cache and the sink buffer.
    """

    def __init__(
        self,
        identity: EndpointIdentityCache,
        counters: TrafficCounters,
        sink: BatchedSink,
    ):
        self.identity = identity
        self.counters = counters
        self.sink = sink

        self.observed = 0
        self.dropped = 0

    def observe(self, obs: FlowObservation) -> CanonicalRow:
        roles = classify(obs)
        client_mac = self.identity.resolve(roles.client_addr, roles.is_download, obs.src_mac)

        if log.isEnabledFor(logging.DEBUG):
            client = f"{roles.client_addr}:{roles.client_port}"
            server = f"{roles.server_addr}:{roles.server_port}"
            log.debug(
                "%s | %-50s %s %-50s : [0x%02x] %10d packets, %10d bytes",
                client_mac,
                client,
                roles.arrow,
                server,
                obs.protocol,
                obs.packets,
                obs.bytes,
            )

        if roles.is_download:
            self.counters.add_download(client_mac, obs.bytes)

        row = CanonicalRow.build(
            client_mac=client_mac,
            client_addr=roles.client_addr,
            client_port=roles.client_port,
            server_addr=roles.server_addr,
            server_port=roles.server_port,
            protocol=obs.protocol,
            packets=obs.packets,
            bytes=obs.bytes,
            is_download=roles.is_download,
        )
        self.sink.write(row)
        self.observed += 1
        return row

    def drop(self, reason: str, detail: str) -> None:
        """
        Count and log a record that never became an observation.
        """
        self.dropped += 1
        self.counters.record_dropped(reason)
        log.warning("dropped flow record (%s): %s", reason, detail)

    def status(self) -> Dict[str, Any]:
        return {
            "observed": self.observed,
            "dropped": self.dropped,
            "endpoints": len(self.identity),
            "sink": self.sink.status(),
        }
