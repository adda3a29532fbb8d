"""
Capabilities receive one flow export protocol each and feed the core pipeline.

Each capability exposes a build_capability factory in its capability module.
"""

__all__ = [
    "ipfix_udp",
]
