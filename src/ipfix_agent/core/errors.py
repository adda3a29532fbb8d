from __future__ import annotations


class IpfixAgentError(Exception):
    """
    Base class for every error raised by ipfix_agent.
    """


class ConfigError(IpfixAgentError):
    """
    Invalid startup configuration. Fatal, reported before any socket is opened.
    """


class MalformedRecordError(IpfixAgentError):
    """
    A flow record that cannot be normalized. The record is dropped and counted.
    """

    reason = "malformed"

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


class MissingFieldError(MalformedRecordError):
    reason = "missing_field"

    def __init__(self, field: str):
        super().__init__(field, "required field not present under any known alias")


class InvalidFieldError(MalformedRecordError):
    reason = "invalid_field"


class UnexpectedPacketError(IpfixAgentError):
    """
    A datagram that did not decode as an IPFIX message.
    """

    reason = "unexpected_packet"


class SinkError(IpfixAgentError):
    """
    The durable store rejected a batch after exhausting its retries.
    """
