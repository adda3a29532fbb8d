from __future__ import annotations

from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Counter


class TrafficCounters:
    """
    Live counters exposed on the metrics endpoint.

    Every metric lives on a private CollectorRegistry so tests and
    embedded use never collide with the process default registry.
    prometheus_client keeps one lock per child, so increments from the
    ingestion task and scrapes from the HTTP thread do not contend on a
    registry wide lock.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()

        self.bytes_received = Counter(
            "ipfix_bytes_received",
            "Total number of bytes received by a local IP.",
            ["mac"],
            registry=self.registry,
        )
        self.records_dropped = Counter(
            "ipfix_records_dropped",
            "Flow records discarded before normalization completed.",
            ["reason"],
            registry=self.registry,
        )
        self.rows_committed = Counter(
            "ipfix_rows_committed",
            "Rows written to the durable store.",
            registry=self.registry,
        )
        self.batches_dropped = Counter(
            "ipfix_batches_dropped",
            "Batches discarded after the durable store rejected them.",
            registry=self.registry,
        )
        self.rows_dropped = Counter(
            "ipfix_rows_dropped",
            "Rows lost together with a dropped batch.",
            registry=self.registry,
        )

    def add_download(self, mac: str, byte_count: int) -> None:
        """
        Only download traffic is counted. Upload traffic from this vantage
        point is the remote peer's download and would be counted twice.
        """
        self.bytes_received.labels(mac=mac).inc(byte_count)

    def record_dropped(self, reason: str) -> None:
        self.records_dropped.labels(reason=reason).inc()

    def batch_committed(self, rows: int) -> None:
        self.rows_committed.inc(rows)

    def batch_dropped(self, rows: int) -> None:
        self.batches_dropped.inc()
        self.rows_dropped.inc(rows)

    def snapshot(self) -> Dict[str, float]:
        """
        Point in time view of download bytes per MAC.
        """
        out: Dict[str, float] = {}
        for metric in self.bytes_received.collect():
            for sample in metric.samples:
                if sample.name.endswith("_total"):
                    out[sample.labels["mac"]] = sample.value
        return out

    def dropped_records(self) -> Dict[str, float]:
        out: Dict[str, float] = {}
        for metric in self.records_dropped.collect():
            for sample in metric.samples:
                if sample.name.endswith("_total"):
                    out[sample.labels["reason"]] = sample.value
        return out
