from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from typing import Any, Dict, Optional

from ipfix_agent.core.capability_base import Capability, CapabilityContext
from ipfix_agent.core.errors import MalformedRecordError, UnexpectedPacketError
from .decoder import IPFIXDecoder
from .fields import build_field_map
from .normalizer import normalize

log = logging.getLogger("ipfix_agent.ipfix")


class IpfixUdpCapability:
    """
    IPFIX over UDP ingestion task.

    One sequential loop: receive a datagram, decode it, push every data
    record through the pipeline and check the sink thresholds after each row.
    When no datagram arrives the loop still wakes up in time for the sink's
    period threshold.

    Malformed records and non IPFIX datagrams are counted and skipped.
    Socket errors end the loop; the sink is flushed on the way out.
    """

    name = "ipfix_udp"

    def __init__(
        self,
        ctx: CapabilityContext,
        decoder: Optional[IPFIXDecoder] = None,
        poll_interval: float = 0.5,
    ):
        self._ctx = ctx
        self._decoder = decoder if decoder is not None else IPFIXDecoder()
        self._poll_interval = float(poll_interval)

        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()
        self._running = False

        self._host = "0.0.0.0"
        self._port = 4739

        self._datagrams = 0
        self._ingested = 0
        self._dropped = 0

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def register_tools(self, mcp: Any) -> None:
        pipeline = self._ctx.pipeline

        @mcp.tool()
        def collector_status() -> Dict[str, Any]:
            return self.status()

        @mcp.tool()
        def lookup_endpoint(address: str) -> Dict[str, Any]:
            try:
                addr = ipaddress.ip_address(address)
            except ValueError:
                return {"address": address, "error": "not an IP address"}
            return {"address": str(addr), "mac": pipeline.identity.lookup(addr)}

    async def start(self, host: str, port: int) -> str:
        if self._running:
            return "already running"

        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_DGRAM)
        try:
            sock.setblocking(False)
            sock.bind((host, int(port)))
        except OSError:
            sock.close()
            raise

        self._host = host
        self._port = sock.getsockname()[1]
        self._stop.clear()
        self._task = asyncio.create_task(self._run(sock))
        self._running = True
        log.info("ipfix collector listening on %s:%d", self._host, self._port)
        return f"ipfix collector started on {self._host}:{self._port}"

    async def stop(self) -> str:
        if not self._running:
            return "not running"
        self._stop.set()
        task, self._task = self._task, None
        self._running = False
        if task:
            await task
        return "stopped"

    async def _run(self, sock: socket.socket) -> None:
        loop = asyncio.get_running_loop()
        sink = self._ctx.pipeline.sink

        try:
            while not self._stop.is_set():
                timeout = max(0.01, min(self._poll_interval, sink.time_until_flush()))
                try:
                    data, addr = await asyncio.wait_for(loop.sock_recvfrom(sock, 65535), timeout=timeout)
                except asyncio.TimeoutError:
                    await sink.commit()
                    continue

                await self.handle_datagram(data, exporter=str(addr[0]))
        except OSError:
            log.exception("ipfix socket failed, stopping collector")
            raise
        finally:
            sock.close()
            flushed = await sink.close()
            log.info("ipfix collector stopped, flushed %d rows", flushed)

    async def handle_datagram(self, data: bytes, exporter: str = "unknown") -> int:
        """
        Run every data record of one datagram through the pipeline, checking
        the sink thresholds after each row and once more for the datagram, so
        datagrams that yield no rows cannot hold back the period flush.
        Returns the number of rows produced.
        """
        pipeline = self._ctx.pipeline
        self._datagrams += 1

        try:
            message = self._decoder.decode(data, exporter=exporter)
        except UnexpectedPacketError as exc:
            self._dropped += 1
            pipeline.drop(exc.reason, f"{exporter}: {exc}")
            await pipeline.sink.commit()
            return 0

        rows = 0
        for flowset in message.flowsets:
            for record in flowset.records:
                try:
                    obs = normalize(build_field_map(record))
                except MalformedRecordError as exc:
                    self._dropped += 1
                    pipeline.drop(exc.reason, f"{exporter} set {flowset.set_id}: {exc}")
                    continue

                pipeline.observe(obs)
                rows += 1
                await pipeline.sink.commit()

        self._ingested += rows
        await pipeline.sink.commit()
        return rows

    def status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "running": self._running,
            "host": self._host,
            "port": self._port,
            "datagrams": self._datagrams,
            "ingested": self._ingested,
            "dropped": self._dropped,
            "templates": len(self._decoder.cache),
            "pipeline": self._ctx.pipeline.status(),
        }


def build_capability(ctx: CapabilityContext) -> Capability:
    return IpfixUdpCapability(ctx)
