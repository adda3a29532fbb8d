from __future__ import annotations
import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from prometheus_client import start_http_server

from ipfix_agent.capabilities.ipfix_udp.capability import IpfixUdpCapability
from ipfix_agent.core.capability_base import CapabilityContext
from ipfix_agent.core.clickhouse import ClickHouseRowWriter
from ipfix_agent.core.config import CollectorConfig
from ipfix_agent.core.counters import TrafficCounters
from ipfix_agent.core.errors import ConfigError, SinkError
from ipfix_agent.core.identity import EndpointIdentityCache
from ipfix_agent.core.pipeline import FlowPipeline
from ipfix_agent.core.server import CollectorMCPServer
from ipfix_agent.core.sink import BatchedSink, RowWriter
from ipfix_agent.logging_config import setup_logging

log = logging.getLogger("ipfix_agent.cli")

USAGE = "Expected arguments: <ipfix bind address> <metrics bind address>"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ipfix-agent",
        description="Collect IPFIX flows, attribute them to client MACs and store them in ClickHouse.",
    )
    parser.add_argument("ipfix_addr", nargs="?", help="UDP bind address for IPFIX, host:port")
    parser.add_argument("metrics_addr", nargs="?", help="HTTP bind address for /metrics, host:port")
    parser.add_argument("--log", default=None, help="log level, overrides IPFIX_AGENT_LOG_LEVEL")
    parser.add_argument("--mcp", action="store_true", help="also serve MCP tools on stdio")
    return parser


async def serve(
    config: CollectorConfig,
    counters: TrafficCounters,
    enable_mcp: bool = False,
    writer: Optional[RowWriter] = None,
    stop: Optional[asyncio.Event] = None,
) -> int:
    """
    Run ingestion until a signal, the stop event or a fatal socket error.
    Returns the process exit code. The sink is flushed on every exit path
    that got past binding.
    """
    if writer is None:
        writer = ClickHouseRowWriter(
            url=config.clickhouse_url,
            table=config.clickhouse_table,
            database=config.clickhouse_database,
            username=config.clickhouse_user,
            password=config.clickhouse_password,
            attempts=config.insert_attempts,
            backoff_seconds=config.insert_backoff,
        )
    if config.clickhouse_create_table and isinstance(writer, ClickHouseRowWriter):
        try:
            await asyncio.to_thread(writer.create_table)
        except SinkError as exc:
            log.error("%s, continuing without it", exc)

    sink = BatchedSink(
        writer,
        max_bytes=config.batch_max_bytes,
        max_rows=config.batch_max_rows,
        period=config.batch_period,
        counters=counters,
    )
    pipeline = FlowPipeline(
        identity=EndpointIdentityCache(max_entries=config.max_endpoints),
        counters=counters,
        sink=sink,
    )
    capability = IpfixUdpCapability(CapabilityContext(pipeline=pipeline))

    try:
        await capability.start(config.ipfix_host, config.ipfix_port)
    except OSError as exc:
        log.error("cannot bind ipfix socket %s:%d: %s", config.ipfix_host, config.ipfix_port, exc)
        _close(writer)
        return 1

    if stop is None:
        stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            pass

    waiters = [asyncio.create_task(stop.wait()), capability.task]
    if enable_mcp:
        server = CollectorMCPServer([capability], counters)
        waiters.append(asyncio.create_task(server.run()))

    await asyncio.wait([w for w in waiters if w is not None], return_when=asyncio.FIRST_COMPLETED)

    for w in waiters:
        if w is not None and w is not capability.task and not w.done():
            w.cancel()

    try:
        await capability.stop()
    except OSError:
        return 1
    finally:
        _close(writer)
    return 0


def _close(writer: RowWriter) -> None:
    close = getattr(writer, "close", None)
    if close is not None:
        close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if not args.ipfix_addr:
        print(f"Missing ipfix address. {USAGE}", file=sys.stderr)
        return 1
    if not args.metrics_addr:
        print(f"Missing metrics address. {USAGE}", file=sys.stderr)
        return 1

    try:
        config = CollectorConfig.from_env(args.ipfix_addr, args.metrics_addr)
    except ConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    setup_logging(args.log or config.log_level)

    counters = TrafficCounters()
    try:
        start_http_server(config.metrics_port, addr=config.metrics_host, registry=counters.registry)
    except OSError as exc:
        log.error("cannot bind metrics endpoint %s:%d: %s", config.metrics_host, config.metrics_port, exc)
        return 1
    log.info("metrics served on http://%s:%d/metrics", config.metrics_host, config.metrics_port)

    return asyncio.run(serve(config, counters, enable_mcp=args.mcp))


if __name__ == "__main__":
    sys.exit(main())
