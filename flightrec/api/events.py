"""Telemetry entries and response models exchanged with the analysis engine."""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

ZERO_TIME = "0001-01-01T00:00:00Z"
_ZERO_DATETIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_TIMESTAMP_RE = re.compile(
    r"^(\d{4})-(\d\d)-(\d\d)[Tt](\d\d):(\d\d):(\d\d)(?:\.(\d{1,9}))?([Zz]|[+-]\d\d:\d\d)$"
)


class EventType(str, Enum):
    """Telemetry types processed by the engine."""

    DNS = "dns"
    IP = "ip"
    HTTP = "http"
    TLS = "tls"


def format_timestamp(ts: Optional[datetime]) -> str:
    """Format as RFC 3339 without trailing fraction zeros; None is the zero time."""
    if ts is None:
        return ZERO_TIME
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    text = ts.strftime("%Y-%m-%dT%H:%M:%S")
    fraction = f"{ts.microsecond:06d}".rstrip("0")
    if fraction:
        text += "." + fraction
    offset = ts.utcoffset() or timedelta(0)
    if not offset:
        return text + "Z"
    sign = "+" if offset > timedelta(0) else "-"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def parse_timestamp(text: str) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp; the zero time gives None."""
    match = _TIMESTAMP_RE.match(text)
    if match is None:
        raise ValueError(f"invalid RFC 3339 timestamp: {text!r}")
    *parts, fraction, zone = match.groups()
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        delta = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tz = timezone(delta if zone[0] == "+" else -delta)
    micro = int((fraction or "").ljust(6, "0")[:6])
    ts = datetime(*map(int, parts), micro, tzinfo=tz)
    return None if ts == _ZERO_DATETIME else ts


def _ip(value: Any) -> Optional[IPAddress]:
    if value is None or value == "":
        return None
    return ipaddress.ip_address(value)


def _ip_text(ip: Optional[IPAddress]) -> str:
    return "" if ip is None else str(ip)


# Attributes of a unified event and their JSON keys; all are left out when empty.
_UNIFIED_OPTIONAL = {
    "src_port": "srcPort", "src_host": "srcHost", "src_mac": "srcMac",
    "src_user": "srcUser", "src_id": "srcID", "conn_id": "connID",
    "bytes_in": "bytesIn", "bytes_out": "bytesOut", "query": "query",
    "query_type": "qtype", "dest_ip": "destIP", "dest_port": "destPort",
    "proto": "proto", "ja3": "ja3", "url": "url", "method": "method",
    "status": "status", "action": "action", "content_type": "contentType",
    "referrer": "referrer", "user_agent": "userAgent",
}


@dataclass
class EventUnified:
    """A network event of any type as reported back with an alert."""

    timestamp: Optional[datetime] = None
    src_ip: Optional[IPAddress] = None
    src_port: int = 0
    src_host: str = ""
    src_mac: str = ""
    src_user: str = ""
    src_id: str = ""
    conn_id: str = ""
    bytes_in: int = 0
    bytes_out: int = 0
    query: str = ""
    query_type: str = ""
    dest_ip: Optional[IPAddress] = None
    dest_port: int = 0
    proto: str = ""
    ja3: str = ""
    url: str = ""
    method: str = ""
    status: int = 0
    action: str = ""
    content_type: str = ""
    referrer: str = ""
    user_agent: str = ""

    def __post_init__(self) -> None:
        self.src_ip = _ip(self.src_ip)
        self.dest_ip = _ip(self.dest_ip)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EventUnified":
        ts = data.get("ts")
        kwargs = {a: data[k] for a, k in _UNIFIED_OPTIONAL.items() if data.get(k) is not None}
        return cls(timestamp=parse_timestamp(ts) if ts else None, src_ip=data.get("srcIP"), **kwargs)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"ts": format_timestamp(self.timestamp), "srcIP": _ip_text(self.src_ip)}
        for attr, key in _UNIFIED_OPTIONAL.items():
            value = getattr(self, attr)
            if value:
                result[key] = _ip_text(value) if attr == "dest_ip" else value
        return result


@dataclass
class Threat:
    """Details of a threat: a human-readable title, severity and policy flag."""

    title: str = ""
    severity: int = 0
    policy: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Threat":
        return cls(data.get("title") or "", data.get("severity") or 0, bool(data.get("policy")))


@dataclass
class Alert:
    """One result of the engine's analysis that was found to be a threat."""

    event_type: str = ""
    event: EventUnified = field(default_factory=EventUnified)
    threats: list[str] = field(default_factory=list)
    flags: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Alert":
        wisdom = data.get("wisdom") or {}
        return cls(
            event_type=data.get("eventType") or "",
            event=EventUnified.from_dict(data.get("event") or {}),
            threats=list(data.get("threats") or []),
            flags=list(wisdom.get("flags") or []),
            labels=list(wisdom.get("labels") or []),
        )


@dataclass
class AlertsResponse:
    """A page of alerts together with the threats they refer to."""

    follow: str = ""
    more: bool = False
    after: str = ""
    before: str = ""
    alerts: list[Alert] = field(default_factory=list)
    threats: dict[str, Threat] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AlertsResponse":
        return cls(
            follow=data.get("follow") or "",
            more=bool(data.get("more")),
            after=data.get("after") or "",
            before=data.get("before") or "",
            alerts=[Alert.from_dict(item) for item in data.get("alerts") or []],
            threats={tid: Threat.from_dict(t) for tid, t in (data.get("threats") or {}).items()},
        )


@dataclass
class DNSEntry:
    """A single DNS query sent for analysis."""

    timestamp: Optional[datetime] = None
    src_ip: Optional[IPAddress] = None
    query: str = ""
    qtype: str = ""

    def __post_init__(self) -> None:
        self.src_ip = _ip(self.src_ip)

    def to_dict(self) -> dict[str, Any]:
        return {"ts": format_timestamp(self.timestamp), "srcIp": _ip_text(self.src_ip),
                "query": self.query, "qtype": self.qtype}


@dataclass
class IPEntry:
    """A single IP connection sent for analysis."""

    timestamp: Optional[datetime] = None
    src_ip: Optional[IPAddress] = None
    src_port: int = 0
    dst_ip: Optional[IPAddress] = None
    dst_port: int = 0
    protocol: str = ""
    bytes_in: int = 0
    bytes_out: int = 0
    ja3: str = ""

    def __post_init__(self) -> None:
        self.src_ip = _ip(self.src_ip)
        self.dst_ip = _ip(self.dst_ip)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ts": format_timestamp(self.timestamp), "srcIp": _ip_text(self.src_ip),
            "srcPort": self.src_port, "destIp": _ip_text(self.dst_ip), "destPort": self.dst_port,
            "proto": self.protocol, "bytesIn": self.bytes_in, "bytesOut": self.bytes_out,
            "ja3": self.ja3,
        }


@dataclass
class HTTPEntry:
    """A single HTTP request sent for analysis."""

    timestamp: Optional[datetime] = None
    src_ip: Optional[IPAddress] = None
    src_port: int = 0
    url: str = ""
    method: str = ""
    status: int = 0
    action: str = ""
    bytes_in: int = 0
    bytes_out: int = 0
    content_type: str = ""
    referrer: str = ""
    user_agent: str = ""

    def __post_init__(self) -> None:
        self.src_ip = _ip(self.src_ip)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ts": format_timestamp(self.timestamp), "srcIp": _ip_text(self.src_ip),
            "srcPort": self.src_port, "url": self.url, "method": self.method,
            "status": self.status, "action": self.action, "bytesIn": self.bytes_in,
            "bytesOut": self.bytes_out, "contentType": self.content_type,
            "referrer": self.referrer, "userAgent": self.user_agent,
        }


@dataclass
class TLSEntry:
    """A single TLS handshake sent for analysis."""

    timestamp: Optional[datetime] = None
    src_ip: Optional[IPAddress] = None
    src_port: int = 0
    dst_ip: Optional[IPAddress] = None
    dst_port: int = 0
    cert_hash: str = ""
    issuer: str = ""
    subject: str = ""
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    ja3: str = ""
    ja3s: str = ""

    def __post_init__(self) -> None:
        self.src_ip = _ip(self.src_ip)
        self.dst_ip = _ip(self.dst_ip)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "ts": format_timestamp(self.timestamp), "srcIp": _ip_text(self.src_ip),
            "srcPort": self.src_port,
        }
        optional = {"destIp": _ip_text(self.dst_ip), "destPort": self.dst_port,
                    "certHash": self.cert_hash, "issuer": self.issuer, "subject": self.subject}
        result.update((k, v) for k, v in optional.items() if v)
        result["validFrom"] = format_timestamp(self.valid_from)
        result["validTo"] = format_timestamp(self.valid_to)
        result.update((k, v) for k, v in (("ja3", self.ja3), ("ja3s", self.ja3s)) if v)
        return result


@dataclass
class EventsResponse:
    """Counts of events received, accepted and rejected by the engine."""

    received: int = 0
    accepted: int = 0
    rejected: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EventsResponse":
        return cls(data.get("received") or 0, data.get("accepted") or 0,
                   dict(data.get("rejected") or {}))


@dataclass
class AccountStatusResponse:
    """Registration and licence state of an account; messages hold level and body."""

    registered: bool = False
    expired: bool = False
    messages: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AccountStatusResponse":
        messages = [{"level": m.get("level") or 0, "body": m.get("body") or ""}
                    for m in data.get("messages") or []]
        return cls(bool(data.get("registered")), bool(data.get("expired")), messages)