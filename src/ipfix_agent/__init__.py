"""
ipfix_agent

IPFIX collector that attributes traffic to client MAC addresses.

Core ideas
1. Capabilities receive protocol specific flow exports
2. Decoders and normalizers turn each data record into a FlowObservation
3. The core pipeline classifies client and server, learns IP to MAC
   bindings, counts download bytes and batches rows for ClickHouse
"""

__version__ = "0.1.0"

__all__ = ["core", "capabilities", "cli"]
