from __future__ import annotations
from typing import Any, Dict, List

from mcp.server.fastmcp import FastMCP

from .capability_base import Capability
from .counters import TrafficCounters


class CollectorMCPServer:
    """
    Read only MCP surface over a running collector.

    Responsibilities:
      Register capability tools (status, endpoint lookup)
      Expose core tools over the live traffic counters

    Tools never write the identity cache or the sink. Those stay owned by
    the ingestion task.
    """

    def __init__(self, capabilities: List[Capability], counters: TrafficCounters):
        self.capabilities = {cap.name: cap for cap in capabilities}
        self.counters = counters
        self.mcp = FastMCP("ipfix_agent")

        for cap in capabilities:
            cap.register_tools(self.mcp)
        self._register_core_tools()

    def _register_core_tools(self) -> None:
        @self.mcp.tool()
        def list_capabilities() -> List[str]:
            return sorted(self.capabilities)

        @self.mcp.tool()
        def traffic_by_mac() -> Dict[str, float]:
            return self.counters.snapshot()

        @self.mcp.tool()
        def dropped_records() -> Dict[str, Any]:
            return self.counters.dropped_records()

    async def run(self) -> None:
        await self.mcp.run_stdio_async()
