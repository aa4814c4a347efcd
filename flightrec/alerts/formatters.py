"""Formatting of alert events as JSON or CEF lines."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Optional

from flightrec.alerts.model import Event
from flightrec.api.client import VERSION

DEFAULT_LOG_VENDOR = "AlphaSOC"
DEFAULT_LOG_PRODUCT = "NFR"
DEFAULT_LOG_VERSION = VERSION

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_HEADER_ESCAPES = str.maketrans({"\\": "\\\\", "|": "\\|"})
_EXTENSION_ESCAPES = str.maketrans({"\\": "\\\\", "=": "\\=", "\n": "\\n"})


class JSONFormatter:
    """Formats an event as a single JSON document."""

    def format(self, event: Event) -> list[bytes]:
        return [json.dumps(event.to_dict(), separators=(",", ":")).encode()]


def _zone_name(ts: datetime) -> str:
    offset = ts.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return "UTC"
    name = ts.tzname() or ""
    if name.isalpha():
        return name
    sign = "+" if offset > timedelta(0) else "-"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{sign}{minutes // 60:02d}{minutes % 60:02d}"


def _cef_time(ts: Optional[datetime]) -> str:
    if ts is None:
        ts = datetime(1, 1, 1, tzinfo=timezone.utc)
    elif ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return (
        f"{_MONTHS[ts.month - 1]} {ts.day:02d} {ts.year:04d} "
        f"{ts.hour:02d}:{ts.minute:02d}:{ts.second:02d}.{ts.microsecond // 1000:03d} "
        f"{_zone_name(ts)}"
    )


def _ip(value: object) -> str:
    return "<nil>" if value is None else str(value)


def _custom_string(index: int, label: str, value: str) -> list[tuple[str, str]]:
    key = f"cs{index}"
    return [(key, value), (key + "Label", label)]


class CEFFormatter:
    """Formats each threat of an event as a separate CEF line."""

    def __init__(
        self,
        vendor: str = DEFAULT_LOG_VENDOR,
        product: str = DEFAULT_LOG_PRODUCT,
        version: str = DEFAULT_LOG_VERSION,
    ) -> None:
        self.vendor = vendor
        self.product = product
        self.version = version

    def _extension(self, event: Event) -> str:
        ext = [
            ("app", event.event_type),
            ("rt", _cef_time(event.timestamp)),
            ("src", _ip(event.src_ip)),
        ]
        flags = ",".join(event.flags)
        if flags:
            ext += _custom_string(1, "flags", flags)
        if event.groups:
            ext += _custom_string(2, "groups", ",".join(g.label for g in event.groups))
        if event.event_type == "dns":
            ext += [("query", event.query), ("requestMethod", event.query_type)]
        elif event.event_type == "ip":
            ext += [
                ("spt", str(event.src_port)),
                ("dst", _ip(event.dest_ip)),
                ("dpt", str(event.dest_port)),
                ("proto", event.proto),
                ("in", str(event.bytes_in)),
                ("out", str(event.bytes_out)),
            ]
        return " ".join(f"{key}={value.translate(_EXTENSION_ESCAPES)}" for key, value in ext)

    def format(self, event: Event) -> list[bytes]:
        extension = self._extension(event)
        header = "|".join(
            part.translate(_HEADER_ESCAPES) for part in (self.vendor, self.product, self.version)
        )
        lines = []
        for threat_id, threat in event.threats.items():
            line = (
                f"CEF:0|{header}|{threat_id.translate(_HEADER_ESCAPES)}|"
                f"{threat.description.translate(_HEADER_ESCAPES)}|{threat.severity * 2}|{extension}"
            )
            lines.append(line.encode())
        return lines