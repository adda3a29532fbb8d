from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ipfix_agent.core.errors import UnexpectedPacketError

# IPFIX protocol spec RFC 7011
# Information element IDs are maintained by IANA

log = logging.getLogger("ipfix_agent.ipfix.decoder")

IPFIX_VERSION = 10
HEADER_LEN = 16
TEMPLATE_SET_ID = 2
OPTIONS_TEMPLATE_SET_ID = 3
MIN_DATA_SET_ID = 256
VARIABLE_LENGTH = 65535


@dataclass(frozen=True)
class FieldSpec:
    ie_id: int
    length: int
    enterprise: Optional[int] = None


@dataclass
class Template:
    template_id: int
    fields: List[FieldSpec]
    options: bool = False


FieldList = List[Tuple[FieldSpec, bytes]]


@dataclass
class FlowSet:
    set_id: int
    records: List[FieldList] = field(default_factory=list)


@dataclass
class IPFIXMessage:
    version: int
    length: int
    export_time: int
    sequence: int
    obs_domain: int
    flowsets: List[FlowSet] = field(default_factory=list)


class IPFIXTemplateCache:
    """
    IPFIX templates are scoped by exporter and observation domain id.
    RFC 7011 defines observation domain id in message header.
    """

    def __init__(self):
        self._templates: Dict[Tuple[str, int], Dict[int, Template]] = {}

    def put(self, exporter: str, obs_domain: int, template: Template) -> None:
        self._templates.setdefault((exporter, obs_domain), {})[template.template_id] = template

    def get(self, exporter: str, obs_domain: int, template_id: int) -> Optional[Template]:
        return self._templates.get((exporter, obs_domain), {}).get(template_id)

    def withdraw(self, exporter: str, obs_domain: int, template_id: int) -> None:
        self._templates.get((exporter, obs_domain), {}).pop(template_id, None)

    def __len__(self) -> int:
        return sum(len(t) for t in self._templates.values())


class IPFIXDecoder:
    """
    Decode IPFIX messages into raw field lists.

    Values are left as bytes. Turning them into addresses and counters is
    the normalizer's job, so this class stays free of any field semantics.

    Structure:
      Message header 16 bytes, then sets.
      Set header 4 bytes: set_id, length.
      Template set id = 2, Options template set id = 3, Data set id >= 256
    """

    def __init__(self, cache: Optional[IPFIXTemplateCache] = None):
        self.cache = cache if cache is not None else IPFIXTemplateCache()

    def decode(self, data: bytes, exporter: str = "unknown") -> IPFIXMessage:
        if len(data) < HEADER_LEN:
            raise UnexpectedPacketError(f"datagram of {len(data)} bytes is shorter than an IPFIX header")

        version, length, export_time, sequence, obs_domain = struct.unpack_from("!HHIII", data, 0)
        if version != IPFIX_VERSION:
            raise UnexpectedPacketError(f"not an IPFIX message, version {version}")

        # Guard length
        msg = data[: min(len(data), length)] if length >= HEADER_LEN else data

        message = IPFIXMessage(
            version=version,
            length=length,
            export_time=export_time,
            sequence=sequence,
            obs_domain=obs_domain,
        )

        offset = HEADER_LEN
        while offset + 4 <= len(msg):
            set_id, set_len = struct.unpack_from("!HH", msg, offset)
            if set_len < 4:
                break
            end = offset + set_len
            if end > len(msg):
                break

            body = msg[offset + 4 : end]
            flowset = FlowSet(set_id=set_id)

            if set_id == TEMPLATE_SET_ID:
                self._parse_template_set(body, exporter, obs_domain, options=False)
            elif set_id == OPTIONS_TEMPLATE_SET_ID:
                self._parse_template_set(body, exporter, obs_domain, options=True)
            elif set_id >= MIN_DATA_SET_ID:
                flowset.records = self._parse_data_set(body, exporter, obs_domain, set_id)

            message.flowsets.append(flowset)
            offset = end

        return message

    def _parse_template_set(self, body: bytes, exporter: str, obs_domain: int, options: bool) -> None:
        """
        Template record format:
          template_id(2), field_count(2), then field specifiers.
        Options template records add scope_field_count(2) after field_count.

        Field specifier:
          ie_id(2), field_length(2)
          if enterprise bit is set on ie_id, then enterprise number (4) follows.

        A template record with field_count 0 withdraws the template.
        """
        header_len = 6 if options else 4
        off = 0
        while off + header_len <= len(body):
            template_id, field_count = struct.unpack_from("!HH", body, off)
            off += header_len

            # Remaining bytes are padding
            if template_id < MIN_DATA_SET_ID:
                return

            if field_count == 0:
                self.cache.withdraw(exporter, obs_domain, template_id)
                log.debug("template %d withdrawn by %s", template_id, exporter)
                continue

            fields: List[FieldSpec] = []
            for _ in range(field_count):
                if off + 4 > len(body):
                    return

                raw_ie, flen = struct.unpack_from("!HH", body, off)
                off += 4

                enterprise = None
                ie_id = raw_ie

                # Enterprise bit is the highest bit of the IE ID field
                if raw_ie & 0x8000:
                    ie_id = raw_ie & 0x7FFF
                    if off + 4 > len(body):
                        return
                    enterprise = struct.unpack_from("!I", body, off)[0]
                    off += 4

                fields.append(FieldSpec(ie_id=int(ie_id), length=int(flen), enterprise=enterprise))

            self.cache.put(
                exporter,
                obs_domain,
                Template(template_id=int(template_id), fields=fields, options=options),
            )

    def _parse_data_set(
        self,
        body: bytes,
        exporter: str,
        obs_domain: int,
        template_id: int,
    ) -> List[FieldList]:
        tmpl = self.cache.get(exporter, obs_domain, template_id)
        if tmpl is None:
            log.debug("no template %d from %s domain %d, skipping data set", template_id, exporter, obs_domain)
            return []

        # Options data describes the exporter, not traffic.
        if tmpl.options:
            return []

        min_len = sum(1 if f.length == VARIABLE_LENGTH else f.length for f in tmpl.fields)
        if min_len <= 0:
            return []

        records: List[FieldList] = []
        off = 0

        while off + min_len <= len(body):
            rec: FieldList = []
            for f in tmpl.fields:
                flen = f.length
                if flen == VARIABLE_LENGTH:
                    if off + 1 > len(body):
                        return records
                    flen = body[off]
                    off += 1
                    if flen == 255:
                        if off + 2 > len(body):
                            return records
                        flen = struct.unpack_from("!H", body, off)[0]
                        off += 2

                if off + flen > len(body):
                    return records

                rec.append((f, body[off : off + flen]))
                off += flen

            records.append(rec)

        return records
