"""Configuration of the Elasticsearch telemetry input."""

from __future__ import annotations

import json
import struct
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Mapping, Optional, Sequence, Union

from flightrec.api.events import EventType

DEFAULT_POLL_INTERVAL = 30  # seconds
DEFAULT_BATCH_SIZE = 10000
DEFAULT_PIT_KEEP_ALIVE = 180.0  # seconds

SUPPORTED_EVENT_TYPES = (EventType.DNS, EventType.IP, EventType.HTTP, EventType.TLS)


class ConfigError(ValueError):
    """The Elasticsearch input configuration is invalid."""


class IndexSchema(str, Enum):
    """Predefined sets of document field names."""

    CORELIGHT = "corelight"
    ECS = "ecs"


def _plain(value: Union[str, Enum, None]) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def validate_index_schema(schema: Union[str, IndexSchema, None]) -> None:
    """Raise ConfigError unless the schema is empty or a supported one."""
    value = _plain(schema)
    if value and value not in {s.value for s in IndexSchema}:
        raise ConfigError("field_schema must be [ecs|graylog|custom] or empty")


def join_field_path(path: Sequence[str]) -> str:
    """Join a nested document field path with dots."""
    return ".".join(path)


def _parse_path(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return value.split(".")
    if isinstance(value, (list, tuple)):
        return [str(part) for part in value]
    return str(value).split(".")


def _path(key: str) -> Any:
    return field(default_factory=list, metadata={"key": key})


@dataclass
class FieldNamesConfig:
    """Names of the document fields holding each part of an event."""

    event_ingested: str = field(default="", metadata={"key": "event_ingested"})
    timestamp: str = field(default="", metadata={"key": "timestamp"})
    src_ip: list[str] = _path("src_ip")
    src_port: list[str] = _path("src_port")
    query: list[str] = _path("query")
    qtype: list[str] = _path("qtype")
    dst_ip: list[str] = _path("dest_ip")
    dst_port: list[str] = _path("dest_port")
    protocol: list[str] = _path("proto")
    bytes_in: list[str] = _path("bytes_in")
    bytes_out: list[str] = _path("bytes_out")
    url: list[str] = _path("url")
    method: list[str] = _path("method")
    status_code: list[str] = _path("status_code")
    user_agent: list[str] = _path("user_agent")
    content_type: list[str] = _path("content_type")
    referrer: list[str] = _path("referrer")
    cert_hash: list[str] = _path("cert_hash")
    issuer: list[str] = _path("issuer")
    subject: list[str] = _path("subject")
    valid_from: list[str] = _path("valid_from")
    valid_to: list[str] = _path("valid_to")
    ja3: list[str] = _path("ja3")
    ja3s: list[str] = _path("ja3s")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "FieldNamesConfig":
        """Build from a mapping of config keys; paths may be dotted strings or lists."""
        data = data or {}
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            value = data.get(f.metadata["key"])
            if f.type == "str":
                kwargs[f.name] = "" if value is None else str(value)
            else:
                kwargs[f.name] = _parse_path(value)
        return cls(**kwargs)

    def is_empty(self) -> bool:
        """True when no field name is set."""
        return not any(getattr(self, f.name) for f in fields(self))

    def merge(self, other: "FieldNamesConfig") -> "FieldNamesConfig":
        """Return a copy with empty field names filled in from ``other``."""
        kwargs: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name) or getattr(other, f.name)
            kwargs[f.name] = list(value) if isinstance(value, list) else value
        return FieldNamesConfig(**kwargs)

    def validate(self, event_type: Union[str, EventType]) -> None:
        """Raise ConfigError when a field required for the event type is missing."""
        if not self.event_ingested:
            raise ConfigError("event_ingested is required")
        if not self.timestamp:
            raise ConfigError("timestamp is required")
        if not self.src_ip:
            raise ConfigError("src_ip is required")
        kind = _plain(event_type)
        if kind == EventType.DNS.value and not self.query:
            raise ConfigError("query is required")
        if kind == EventType.IP.value and not self.dst_ip:
            raise ConfigError("dest_ip is required")
        if kind == EventType.HTTP.value and not self.url:
            raise ConfigError("url is required")


def _names(event_ingested: str, timestamp: str, **paths: str) -> FieldNamesConfig:
    return FieldNamesConfig(
        event_ingested=event_ingested,
        timestamp=timestamp,
        **{name: path.split(".") for name, path in paths.items()},
    )


_DEFAULT_MUST_HAVE_FIELDS: dict[str, dict[str, list[str]]] = {
    "dns": {"ecs": ["@timestamp", "event.ingested", "source.ip", "dns.question.name"]},
    "ip": {"ecs": ["@timestamp", "event.ingested", "source.ip", "destination.ip"]},
    "http": {"ecs": ["@timestamp", "event.ingested", "source.ip", "url.original"]},
    "tls": {"ecs": ["@timestamp", "event.ingested", "source.ip"]},
}

_DEFAULT_SEARCH_TERMS: dict[str, dict[str, str]] = {
    "dns": {"corelight": '{"term": {"_path":"dns"}}'},
    "ip": {"corelight": '{"term": {"_path":"conn"}}'},
    "http": {"corelight": '{"term": {"_path":"http"}}'},
    "tls": {"corelight": '{"term": {"_path":"ssl"}}'},
}

DEFAULT_FIELD_NAMES: dict[str, dict[str, FieldNamesConfig]] = {
    "dns": {
        "ecs": _names(
            "event.ingested",
            "@timestamp",
            src_ip="source.ip",
            src_port="source.port",
            query="dns.question.name",
            qtype="dns.question.type",
        )
    },
    "ip": {
        "ecs": _names(
            "event.ingested",
            "@timestamp",
            src_ip="source.ip",
            src_port="source.port",
            dst_ip="destination.ip",
            dst_port="destination.port",
            protocol="network.protocol",
            bytes_in="destination.bytes",
            bytes_out="source.bytes",
        )
    },
    "http": {
        "ecs": _names(
            "event.ingested",
            "@timestamp",
            src_ip="source.ip",
            src_port="source.port",
            url="url.original",
            method="http.request.method",
            status_code="http.response.status_code",
            bytes_in="destination.bytes",
            bytes_out="source.bytes",
            user_agent="user_agent.original",
            content_type="http.response.mime_type",
            referrer="http.request.referrer",
        )
    },
    "tls": {
        "ecs": _names(
            "event.ingested",
            "@timestamp",
            src_ip="source.ip",
            src_port="source.port",
            dst_ip="destination.ip",
            dst_port="destination.port",
            cert_hash="tls.server.hash.sha1",
            issuer="tls.server.issuer",
            subject="tls.server.subject",
            valid_from="tls.server.not_before",
            valid_to="tls.server.not_after",
            ja3="tls.client.ja3",
            ja3s="tls.server.ja3s",
        )
    },
}


@dataclass
class SearchConfig:
    """A periodic search that pulls one type of telemetry from a set of indices."""

    event_type: str = ""
    indices: list[str] = field(default_factory=list)
    index_schema: str = ""
    poll_interval: float = 0
    batch_size: int = 0
    pit_keep_alive: float = 0
    must_have_fields: list[str] = field(default_factory=list)
    search_term: str = ""
    timestamp_format: str = ""
    field_names: Optional[FieldNamesConfig] = None
    _final_field_names: Optional[FieldNamesConfig] = field(
        default=None, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self.event_type = _plain(self.event_type)
        self.index_schema = _plain(self.index_schema)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in ("event_type", "index_schema"):
            value = _plain(value)
        super().__setattr__(name, value)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SearchConfig":
        """Build from a mapping of config keys."""
        data = data or {}
        names = data.get("field_names")
        return cls(
            event_type=data.get("event_type") or "",
            indices=[str(i) for i in data.get("indices") or []],
            index_schema=data.get("index_schema") or "",
            poll_interval=float(data.get("poll_interval") or 0),
            batch_size=int(data.get("batch_size") or 0),
            pit_keep_alive=float(data.get("pit_keep_alive") or 0),
            must_have_fields=[str(f) for f in data.get("must_have_fields") or []],
            search_term=data.get("search_term") or "",
            timestamp_format=data.get("timestamp_format") or "",
            field_names=FieldNamesConfig.from_dict(names) if names is not None else None,
        )

    def validate(self) -> None:
        """Raise ConfigError if invalid; fill in defaults and final field names."""
        if not self.event_type:
            raise ConfigError("event_type must not be empty")

        supported = self.event_type in {t.value for t in SUPPORTED_EVENT_TYPES}

        if self.poll_interval == 0:
            self.poll_interval = DEFAULT_POLL_INTERVAL
        if self.batch_size == 0:
            self.batch_size = DEFAULT_BATCH_SIZE
        if self.pit_keep_alive == 0:
            self.pit_keep_alive = DEFAULT_PIT_KEEP_ALIVE

        if not supported:
            raise ConfigError(f"unsupported event_type: {self.event_type}")
        if not self.indices:
            raise ConfigError("at least one index name is required")
        validate_index_schema(self.index_schema)

        search_term = self.final_search_term()
        if not search_term and not self.final_must_have_fields():
            raise ConfigError("search_term and/or must_have_fields are required")
        if search_term:
            try:
                json.loads(search_term)
            except ValueError as exc:
                raise ConfigError("search term must be valid json") from exc

        self.evaluate_field_names()
        self.final_field_names().validate(self.event_type)

    def final_must_have_fields(self) -> list[str]:
        """Fields a document must hold: the configured ones or the schema's defaults."""
        if self.must_have_fields:
            return self.must_have_fields
        return list(_DEFAULT_MUST_HAVE_FIELDS.get(self.event_type, {}).get(self.index_schema, []))

    def final_search_term(self) -> str:
        """The configured search term, or the schema's default one."""
        if self.search_term:
            return self.search_term
        return _DEFAULT_SEARCH_TERMS.get(self.event_type, {}).get(self.index_schema, "")

    def evaluate_field_names(self) -> None:
        """Merge the configured field names over the schema's defaults."""
        defaults = DEFAULT_FIELD_NAMES.get(self.event_type, {}).get(
            self.index_schema, FieldNamesConfig()
        )
        user = self.field_names if self.field_names is not None else FieldNamesConfig()
        self._final_field_names = user.merge(defaults)

    def final_field_names(self) -> FieldNamesConfig:
        """Field names after merging with defaults."""
        if self._final_field_names is None:
            self.evaluate_field_names()
        assert self._final_field_names is not None
        return self._final_field_names

    def event_fields(self) -> list[str]:
        """Dotted names of the _source fields to retrieve for the event type."""
        fn = self.final_field_names()
        paths = [fn.src_ip, fn.src_port]
        kind = self.event_type
        if kind == EventType.DNS.value:
            paths += [fn.query, fn.qtype]
        elif kind == EventType.IP.value:
            paths += [fn.dst_ip, fn.dst_port, fn.protocol, fn.bytes_in, fn.bytes_out]
        elif kind == EventType.HTTP.value:
            paths += [fn.url, fn.method, fn.status_code, fn.user_agent]
        elif kind == EventType.TLS.value:
            paths += [
                fn.dst_ip,
                fn.dst_port,
                fn.cert_hash,
                fn.issuer,
                fn.subject,
                fn.valid_from,
                fn.valid_to,
                fn.ja3,
                fn.ja3s,
            ]
        else:
            raise ConfigError(f"event type {kind} is not supported")

        result = [name for name in map(join_field_path, paths) if name]
        if not result:
            raise ConfigError(f"invalid field mappings for event type {kind}: no mapped fields")
        return result


@dataclass
class ElasticConfig:
    """Connection details and searches of the Elasticsearch input."""

    enabled: bool = False
    cloud_id: str = ""
    hosts: list[str] = field(default_factory=list)
    api_key: str = ""
    username: str = ""
    password: str = ""
    searches: list[SearchConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ElasticConfig":
        """Build from a mapping of config keys."""
        data = data or {}
        return cls(
            enabled=bool(data.get("enabled")),
            cloud_id=data.get("cloud_id") or "",
            hosts=[str(h) for h in data.get("hosts") or []],
            api_key=data.get("api_key") or "",
            username=data.get("username") or "",
            password=data.get("password") or "",
            searches=[SearchConfig.from_dict(s) for s in data.get("searches") or []],
        )

    def validate(self) -> None:
        """Raise ConfigError if an enabled configuration is invalid."""
        if not self.enabled:
            return
        if bool(self.cloud_id) == bool(self.hosts):
            raise ConfigError("either cloud_id or hosts field must be set")
        if self.api_key and self.username:
            raise ConfigError("either apikey or username field must be set")
        if not self.searches:
            raise ConfigError("at least one search must be defined")
        for search in self.searches:
            search.validate()


_MASK64 = (1 << 64) - 1
_C1 = 0x87C37B91114253D5
_C2 = 0x4CF5AD432745937F


def _rotl(x: int, r: int) -> int:
    return ((x << r) | (x >> (64 - r))) & _MASK64


def _fmix(k: int) -> int:
    k ^= k >> 33
    k = (k * 0xFF51AFD7ED558CCD) & _MASK64
    k ^= k >> 33
    k = (k * 0xC4CEB53FE1A85EC3) & _MASK64
    k ^= k >> 33
    return k


def murmur3_64(data: Union[str, bytes]) -> int:
    """First 64 bits of MurmurHash3 x64 128-bit with seed 0."""
    if isinstance(data, str):
        data = data.encode()
    length = len(data)
    h1 = h2 = 0
    body = length - length % 16
    for k1, k2 in struct.iter_unpack("<QQ", data[:body]):
        k1 = (k1 * _C1) & _MASK64
        k1 = (_rotl(k1, 31) * _C2) & _MASK64
        h1 ^= k1
        h1 = (_rotl(h1, 27) + h2) & _MASK64
        h1 = (h1 * 5 + 0x52DCE729) & _MASK64

        k2 = (k2 * _C2) & _MASK64
        k2 = (_rotl(k2, 33) * _C1) & _MASK64
        h2 ^= k2
        h2 = (_rotl(h2, 31) + h1) & _MASK64
        h2 = (h2 * 5 + 0x38495AB5) & _MASK64

    tail = data[body:]
    k1 = int.from_bytes(tail[:8], "little")
    k2 = int.from_bytes(tail[8:], "little")
    k2 = (k2 * _C2) & _MASK64
    h2 ^= (_rotl(k2, 33) * _C1) & _MASK64
    k1 = (k1 * _C1) & _MASK64
    h1 ^= (_rotl(k1, 31) * _C2) & _MASK64

    h1 ^= length
    h2 ^= length
    h1 = (h1 + h2) & _MASK64
    h2 = (h2 + h1) & _MASK64
    h1 = _fmix(h1)
    h2 = _fmix(h2)
    return (h1 + h2) & _MASK64


def config_fingerprint(config: ElasticConfig, search: SearchConfig) -> str:
    """A stable identifier of a search on an instance (cloud id or hosts, type, indices)."""
    items = [config.cloud_id, search.event_type, *config.hosts, *search.indices]
    return format(murmur3_64("|".join(items)), "x")