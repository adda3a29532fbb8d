from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Protocol

from .pipeline import FlowPipeline


@dataclass
class CapabilityContext:
    """
    Shared runtime objects provided to each capability.

    pipeline
      FlowPipeline that turns FlowObservation objects into rows, counters
      and identity cache updates. A capability only has to decode its
      protocol and call pipeline.observe() or pipeline.drop().
    """

    pipeline: FlowPipeline


class Capability(Protocol):
    """
    Required interface for an ingestion capability.

    A capability is responsible for
    1. Receiving datagrams from its protocol source
    2. Decoding them into FlowObservation objects
    3. Feeding ctx.pipeline and committing the sink between datagrams
    """

    name: str

    def register_tools(self, mcp: Any) -> None:
        """
        Called once when the MCP surface is enabled.
        """
        ...

    def status(self) -> Dict[str, Any]:
        """
        Return quick health and counters. Must be fast and side effect free.
        """
        ...

    async def start(self, host: str, port: int) -> str:
        """
        Bind and start the receive loop. Bind errors propagate.
        """
        ...

    async def stop(self) -> str:
        """
        Stop the receive loop and flush the sink.
        """
        ...
