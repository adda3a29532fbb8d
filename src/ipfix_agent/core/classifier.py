from __future__ import annotations

from dataclasses import dataclass

from .models import FlowObservation, IPAddress

# flowDirection value for ingress at the exporter's observation point.
INGRESS = 0


@dataclass(frozen=True)
class Roles:
    """
    Client and server sides of one observation.

    The exporter reports direction relative to its own interface, so the
    client is always the local endpoint:
      ingress (download)  client = destination, server = source
      egress  (upload)    client = source,      server = destination
    """

    client_addr: IPAddress
    client_port: int
    server_addr: IPAddress
    server_port: int
    is_download: bool

    @property
    def arrow(self) -> str:
        return "<-" if self.is_download else "->"


def classify(obs: FlowObservation) -> Roles:
    is_download = obs.direction == INGRESS

    if is_download:
        return Roles(
            client_addr=obs.dst_addr,
            client_port=obs.dst_port,
            server_addr=obs.src_addr,
            server_port=obs.src_port,
            is_download=True,
        )

    return Roles(
        client_addr=obs.src_addr,
        client_port=obs.src_port,
        server_addr=obs.dst_addr,
        server_port=obs.dst_port,
        is_download=False,
    )
