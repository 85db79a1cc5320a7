"""CoT event model and the codec contract used by the streaming engine.

The engine never inspects XML itself. It hands each framed message to a
:class:`CoTCodec` and only reads ``CoT.type`` and :meth:`CoT.attribute` on
the result. :class:`XmlCoTCodec` is a small ElementTree-backed codec.
Richer CoT libraries can be plugged in through the same three methods.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Protocol

import pytak

from .errors import TAKDecodeError

PING_TYPE = "t-x-c-t"
PONG_TYPE = "t-x-c-t-r"
VERSION_TYPE = "t-x-takp-v"

PING_UID = "takPing"


class CoT:
    """A single Cursor-on-Target event."""

    def __init__(self, raw: ET.Element) -> None:
        if raw.tag != "event":
            raise ValueError(f"CoT root must be <event>, got <{raw.tag}>")
        self.raw = raw

    def __repr__(self) -> str:
        return f"CoT(type={self.type!r}, uid={self.uid!r})"

    @property
    def type(self) -> str:
        return self.raw.get("type", "")

    @property
    def uid(self) -> str:
        return self.raw.get("uid", "")

    @property
    def how(self) -> str:
        return self.raw.get("how", "")

    @property
    def detail(self) -> ET.Element | None:
        return self.raw.find("detail")

    def attribute(self, path: str, name: str) -> str | None:
        """Return attribute ``name`` of the element at ``path`` below <event>.

        ``path`` uses ElementTree syntax, e.g.
        ``"detail/TakControl/TakServerVersionInfo"``.
        """
        element = self.raw.find(path)
        if element is None:
            return None
        return element.get(name)


class CoTCodec(Protocol):
    """Conversion between framed XML text and :class:`CoT` objects."""

    def from_xml(self, xml: str) -> CoT: ...

    def to_xml(self, cot: CoT) -> str: ...

    def ping(self) -> CoT: ...


class XmlCoTCodec:
    """CoT codec built on :mod:`xml.etree.ElementTree`."""

    def __init__(self, *, stale: int = 60) -> None:
        self._stale = stale

    def from_xml(self, xml: str) -> CoT:
        try:
            return CoT(ET.fromstring(xml))
        except (ET.ParseError, ValueError) as err:
            raise TAKDecodeError(f"Invalid CoT message: {err}", xml) from err

    def to_xml(self, cot: CoT) -> str:
        return ET.tostring(cot.raw, encoding="unicode")

    def ping(self) -> CoT:
        """Build the keepalive event TAK servers answer with ``t-x-c-t-r``."""
        root = ET.Element("event")
        root.set("version", "2.0")
        root.set("type", PING_TYPE)
        root.set("uid", PING_UID)
        root.set("how", "h-g-i-g-o")
        root.set("time", pytak.cot_time())
        root.set("start", pytak.cot_time())
        root.set("stale", pytak.cot_time(self._stale))

        ET.SubElement(
            root,
            "point",
            attrib={
                "lat": "0.0",
                "lon": "0.0",
                "hae": "0.0",
                "ce": "9999999.0",
                "le": "9999999.0",
            },
        )
        ET.SubElement(root, "detail")
        return CoT(root)
