"""Configuration of the flight recorder: loading, defaults, validation and data files."""

from __future__ import annotations

import ipaddress
import logging
import os
import posixpath
import re
import socket
import sys
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Mapping, Optional, Union
from urllib.parse import urlsplit

import psutil
import yaml

from flightrec.api.events import format_timestamp, parse_timestamp
from flightrec.elastic.config import ConfigError as ElasticConfigError
from flightrec.elastic.config import ElasticConfig, FieldNamesConfig, SearchConfig, join_field_path

log = logging.getLogger(__name__)

_LOG_LEVELS = ("debug", "info", "warn", "error")
_MONITOR_FORMATS = ("bro", "suricata", "msdns", "syslog-named")
_MIN_INTERVAL = timedelta(seconds=5)
_MIN_BUFFER_SIZE = 64


class ConfigError(ValueError):
    """The configuration is invalid or cannot be loaded."""


# --- durations ---------------------------------------------------------------

_NS = 1
_US = 1000 * _NS
_MS = 1000 * _US
_SEC = 1000 * _MS
_UNITS = {
    "ns": _NS,
    "us": _US,
    "µs": _US,
    "μs": _US,
    "ms": _MS,
    "s": _SEC,
    "m": 60 * _SEC,
    "h": 3600 * _SEC,
}
_COMPONENT = re.compile(r"(?:(\d+)(?:\.(\d*))?|\.(\d+))([^\d.]*)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as "300ms", "1.5h" or "2h45m"."""
    invalid = ValueError(f'time: invalid duration "{text}"')
    rest = text
    negative = False
    if rest[:1] in ("-", "+"):
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise invalid

    total_ns = 0
    pos = 0
    while pos < len(rest):
        match = _COMPONENT.match(rest, pos)
        if match is None or match.end() == pos:
            raise invalid
        whole, frac, only_frac, unit = match.groups()
        if only_frac is not None:
            whole, frac = "0", only_frac
        if not unit:
            raise ValueError(f'time: missing unit in duration "{text}"')
        if unit not in _UNITS:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{text}"')
        scale = _UNITS[unit]
        total_ns += int(whole) * scale
        if frac:
            total_ns += int(frac) * scale // 10 ** len(frac)
        pos = match.end()

    micros = total_ns // 1000
    return timedelta(microseconds=-micros if negative else micros)


def _format_fraction(value: int, unit: int) -> str:
    whole, part = divmod(value, unit)
    if not part:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{str(part).zfill(digits).rstrip('0')}"


def _format_duration(delta: timedelta) -> str:
    ns = ((delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds) * 1000
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)
    if ns < _SEC:
        if ns < _US:
            return f"{sign}{ns}ns"
        if ns < _MS:
            return f"{sign}{_format_fraction(ns, _US)}µs"
        return f"{sign}{_format_fraction(ns, _MS)}ms"
    hours, rem = divmod(ns, 3600 * _SEC)
    minutes, rem = divmod(rem, 60 * _SEC)
    seconds = f"{_format_fraction(rem, _SEC)}s"
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return sign + seconds


# --- names and files ---------------------------------------------------------


def is_domain_name(name: str) -> bool:
    """True if the text is a syntactically valid domain name."""
    if name == ".":
        return True
    length = len(name)
    if length == 0 or length > 254 or (length == 254 and not name.endswith(".")):
        return False
    last = "."
    non_numeric = False
    part_len = 0
    for char in name:
        if ("a" <= char <= "z") or ("A" <= char <= "Z") or char == "_":
            non_numeric = True
            part_len += 1
        elif "0" <= char <= "9":
            part_len += 1
        elif char == "-":
            if last == ".":
                return False
            part_len += 1
            non_numeric = True
        elif char == ".":
            if last in (".", "-"):
                return False
            if part_len > 63 or part_len == 0:
                return False
            part_len = 0
        else:
            return False
        last = char
    if last == "-" or part_len > 63:
        return False
    return non_numeric


def validate_filename(path: str, allow_std_streams: bool) -> None:
    """Raise ConfigError unless the file can be created in an existing directory."""
    if allow_std_streams and path in ("stdout", "stderr"):
        return
    directory = os.path.dirname(path) or "."
    try:
        dir_stat = os.stat(directory)
    except OSError as exc:
        raise ConfigError(f"can't stat {directory} directory: {exc}") from exc
    if not os.path.isdir(directory):
        raise ConfigError(f"{directory} is not directory")
    del dir_stat
    try:
        os.stat(path)
    except FileNotFoundError:
        return
    except OSError as exc:
        raise ConfigError(f"can't stat {path} file: {exc}") from exc
    if not os.path.isfile(path):
        raise ConfigError(f"{path} is not regular file")


def validate_directory(path: str) -> None:
    """Create the directory if needed and check that files can be written in it."""
    try:
        os.makedirs(path, mode=0o755, exist_ok=True)
        probe = Path(path) / "datadir-permission-test"
        probe.touch()
        probe.unlink(missing_ok=True)
    except OSError as exc:
        raise ConfigError(str(exc)) from exc


def _split_host_port(hostport: str) -> tuple[str, str]:
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise ValueError("missing ']' in address")
        rest = hostport[end + 1 :]
        if not rest.startswith(":"):
            raise ValueError("missing port in address")
        return hostport[1:end], rest[1:]
    host, colon, port = hostport.rpartition(":")
    if not colon:
        raise ValueError("missing port in address")
    if ":" in host:
        raise ValueError("too many colons in address")
    return host, port


def _is_cidr(text: str) -> bool:
    _, slash, prefix = text.partition("/")
    if not slash or not prefix.isascii() or not prefix.isdigit():
        return False
    try:
        ipaddress.ip_network(text, strict=False)
    except ValueError:
        return False
    return True


def _is_windows() -> bool:
    return sys.platform.startswith("win")


# --- network interfaces ------------------------------------------------------


def _hardware_addr(addrs: list[Any]) -> str:
    for addr in addrs:
        if addr.family == psutil.AF_LINK:
            return str(addr.address)
    return ""


def _interface_by_name(name: str) -> str:
    interfaces = psutil.net_if_addrs()
    if name not in interfaces:
        raise ConfigError(f"can't open interface {name}: no such network interface")
    return _hardware_addr(interfaces[name])


def _is_global_unicast(text: str) -> bool:
    try:
        ip = ipaddress.ip_address(text.split("%", 1)[0])
    except ValueError:
        return False
    return not (ip.is_loopback or ip.is_link_local or ip.is_multicast or ip.is_unspecified)


def _interface_with_public_ip() -> tuple[str, str]:
    stats = psutil.net_if_stats()
    for name, addrs in psutil.net_if_addrs().items():
        state = stats.get(name)
        if state is None or not state.isup:
            continue
        for addr in addrs:
            if addr.family in (socket.AF_INET, socket.AF_INET6) and _is_global_unicast(addr.address):
                return name, _hardware_addr(addrs)
    raise ConfigError("can't find an interface for sniffing: no interface with a public ip found")


# --- configuration sections --------------------------------------------------


@dataclass
class Monitor:
    """A log file to monitor."""

    format: str = ""
    type: str = ""
    file: str = ""


@dataclass
class ScopeGroup:
    """Networks and domains that make up a scope group."""

    label: str = ""
    in_scope: list[str] = field(default_factory=list)
    out_scope: list[str] = field(default_factory=list)
    trusted_domains: list[str] = field(default_factory=list)
    trusted_ips: list[str] = field(default_factory=list)


@dataclass
class EngineConfig:
    """Connection to the analysis engine and what it analyses."""

    host: str = ""
    api_key: str = ""
    analyze_dns: bool = False
    analyze_ip: bool = False
    analyze_http: bool = False
    poll_interval: timedelta = timedelta(0)


@dataclass
class InputsConfig:
    """Where network traffic is collected from."""

    sniffer_enabled: bool = False
    sniffer_interface: str = ""
    sniffer_hardware_addr: str = ""
    monitors: list[Monitor] = field(default_factory=list)
    elastic: ElasticConfig = field(default_factory=ElasticConfig)
    msdns_time_format: str = ""
    use_inotify: bool = False


@dataclass
class OutputsConfig:
    """Where alerts from the engine are sent."""

    enabled: bool = False
    graylog_uri: str = ""
    graylog_level: int = 0
    syslog_ip: str = ""
    syslog_port: int = 0
    syslog_proto: str = ""
    syslog_format: str = ""
    file: str = ""
    format: str = ""


@dataclass
class LogConfig:
    """Logging destination and level."""

    file: str = ""
    level: str = ""


@dataclass
class DataConfig:
    """Locations of internal data."""

    file: str = ""
    dir: str = ""


@dataclass
class EventsConfig:
    """Buffering of one kind of event before it is sent."""

    buffer_size: int = 0
    flush_interval: timedelta = timedelta(0)
    failed_file: str = ""


# (yaml key path, attribute path, kind, omitted when empty)
_SCALARS: tuple[tuple[tuple[str, ...], str, str, bool], ...] = (
    (("engine", "host"), "engine.host", "str", True),
    (("engine", "api_key"), "engine.api_key", "str", True),
    (("engine", "analyze", "dns"), "engine.analyze_dns", "bool", False),
    (("engine", "analyze", "ip"), "engine.analyze_ip", "bool", False),
    (("engine", "analyze", "http"), "engine.analyze_http", "bool", False),
    (("engine", "alerts", "poll_interval"), "engine.poll_interval", "duration", True),
    (("inputs", "sniffer", "enabled"), "inputs.sniffer_enabled", "bool", False),
    (("inputs", "sniffer", "interface"), "inputs.sniffer_interface", "str", True),
    (("inputs", "msdns_time_format"), "inputs.msdns_time_format", "str", False),
    (("inputs", "use_inotify"), "inputs.use_inotify", "bool", False),
    (("outputs", "enabled"), "outputs.enabled", "bool", False),
    (("outputs", "graylog", "uri"), "outputs.graylog_uri", "str", False),
    (("outputs", "graylog", "level"), "outputs.graylog_level", "int", False),
    (("outputs", "syslog", "ip"), "outputs.syslog_ip", "str", False),
    (("outputs", "syslog", "port"), "outputs.syslog_port", "int", False),
    (("outputs", "syslog", "proto"), "outputs.syslog_proto", "str", True),
    (("outputs", "syslog", "format"), "outputs.syslog_format", "str", True),
    (("outputs", "file"), "outputs.file", "str", True),
    (("outputs", "format"), "outputs.format", "str", True),
    (("log", "file"), "log.file", "str", True),
    (("log", "level"), "log.level", "str", True),
    (("data", "file"), "data.file", "str", True),
    (("data", "dir"), "data.dir", "str", True),
    (("scope", "file"), "scope_file", "str", True),
    (("dns_events", "buffer_size"), "dns_events.buffer_size", "int", True),
    (("dns_events", "flush_interval"), "dns_events.flush_interval", "duration", True),
    (("dns_events", "failed", "file"), "dns_events.failed_file", "str", True),
    (("ip_events", "buffer_size"), "ip_events.buffer_size", "int", True),
    (("ip_events", "flush_interval"), "ip_events.flush_interval", "duration", True),
    (("ip_events", "failed", "file"), "ip_events.failed_file", "str", True),
    (("http_events", "buffer_size"), "http_events.buffer_size", "int", True),
    (("http_events", "flush_interval"), "http_events.flush_interval", "duration", True),
)

_ZERO = {"str": "", "bool": False, "int": 0, "duration": timedelta(0)}


def _convert(kind: str, value: Any, key: str) -> Any:
    if value is None:
        return _ZERO[kind]
    if kind == "str":
        if isinstance(value, (dict, list)):
            raise ConfigError(f"cannot unmarshal a collection into {key}")
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)
    if kind == "bool":
        if not isinstance(value, bool):
            raise ConfigError(f"cannot unmarshal {value!r} into {key} (bool)")
        return value
    if kind == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"cannot unmarshal {value!r} into {key} (int)")
        return value
    if not isinstance(value, str):
        raise ConfigError(f"cannot unmarshal {value!r} into {key} (duration)")
    try:
        return parse_duration(value)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def _export(kind: str, value: Any) -> Any:
    return _format_duration(value) if kind == "duration" else value


def _lookup(data: Mapping[str, Any], path: tuple[str, ...]) -> tuple[bool, Any]:
    node: Any = data
    for depth, key in enumerate(path):
        if node is None:
            return False, None
        if not isinstance(node, Mapping):
            raise ConfigError(f"{'.'.join(path[:depth])} must be a mapping")
        if key not in node:
            return False, None
        node = node[key]
    return True, node


def _resolve(obj: Any, attr: str) -> tuple[Any, str]:
    *parents, name = attr.split(".")
    for parent in parents:
        obj = getattr(obj, parent)
    return obj, name


def _string_list(value: Any, key: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{key} must be a list")
    return [str(item) for item in value]


def _default_scope_groups() -> dict[str, ScopeGroup]:
    return {
        "default": ScopeGroup(
            label="Default",
            in_scope=["10.0.0.0/8", "192.168.0.0/16", "172.16.0.0/12", "fc00::/7"],
            trusted_domains=["*.arpa", "*.lan", "*.local", "*.internal"],
            trusted_ips=[
                "10.0.0.0/8",
                "127.0.0.0/8",
                "169.254.0.0/16",
                "172.16.0.0/12",
                "192.168.0.0/16",
                "224.0.0.0/8",
                "255.255.255.255/32",
                "fc00::/7",
                "fe80::/10",
                "ff00::/8",
            ],
        )
    }


def _parse_scope_group(data: Any) -> ScopeGroup:
    if data is None:
        return ScopeGroup()
    if not isinstance(data, Mapping):
        raise ConfigError("scope group must be a mapping")
    return ScopeGroup(
        label=str(data.get("label") or ""),
        in_scope=_string_list(data.get("in_scope"), "in_scope"),
        out_scope=_string_list(data.get("out_scope"), "out_scope"),
        trusted_domains=_string_list(data.get("trusted_domains"), "trusted_domains"),
        trusted_ips=_string_list(data.get("trusted_ips"), "trusted_ips"),
    )


def _search_to_dict(search: SearchConfig) -> dict[str, Any]:
    names = None
    if search.field_names is not None:
        names = {}
        for f in fields(FieldNamesConfig):
            value = getattr(search.field_names, f.name)
            names[f.metadata["key"]] = value if isinstance(value, str) else join_field_path(value)
    return {
        "event_type": search.event_type,
        "indices": list(search.indices),
        "index_schema": search.index_schema,
        "poll_interval": search.poll_interval,
        "batch_size": search.batch_size,
        "pit_keep_alive": search.pit_keep_alive,
        "must_have_fields": list(search.must_have_fields),
        "search_term": search.search_term,
        "timestamp_format": search.timestamp_format,
        "field_names": names,
    }


def _elastic_to_dict(elastic: ElasticConfig) -> dict[str, Any]:
    return {
        "enabled": elastic.enabled,
        "cloud_id": elastic.cloud_id,
        "hosts": list(elastic.hosts),
        "api_key": elastic.api_key,
        "username": elastic.username,
        "password": elastic.password,
        "searches": [_search_to_dict(s) for s in elastic.searches],
    }


def _prune(node: dict[str, Any]) -> dict[str, Any]:
    result = {}
    for key, value in node.items():
        if isinstance(value, dict):
            value = _prune(value)
            if not value:
                continue
        result[key] = value
    return result


@dataclass
class Config:
    """The whole configuration of the flight recorder."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    inputs: InputsConfig = field(default_factory=InputsConfig)
    outputs: OutputsConfig = field(default_factory=OutputsConfig)
    log: LogConfig = field(default_factory=LogConfig)
    data: DataConfig = field(default_factory=DataConfig)
    scope_file: str = ""
    scope_groups: dict[str, ScopeGroup] = field(default_factory=dict)
    dns_events: EventsConfig = field(default_factory=EventsConfig)
    ip_events: EventsConfig = field(default_factory=EventsConfig)
    http_events: EventsConfig = field(default_factory=EventsConfig)

    @classmethod
    def default(cls) -> "Config":
        """A configuration with every default set."""
        cfg = cls()
        cfg.engine.host = "https://api.alphasoc.net"
        cfg.engine.analyze_dns = True
        cfg.engine.analyze_ip = True
        cfg.engine.analyze_http = True
        cfg.engine.poll_interval = timedelta(minutes=5)

        cfg.inputs.sniffer_enabled = True
        cfg.inputs.use_inotify = not _is_windows()

        cfg.outputs.enabled = True
        cfg.outputs.file = "stderr"
        cfg.outputs.format = "json"
        cfg.outputs.graylog_level = 1
        cfg.outputs.syslog_port = 514
        cfg.outputs.syslog_proto = "tcp"
        cfg.outputs.syslog_format = "json"

        cfg.log.file = "stdout"
        cfg.log.level = "info"

        cfg.data.file = "/run/nfr.data"
        cfg.data.dir = "/run/nfr"
        if _is_windows():
            app_data = os.environ.get("AppData", "")
            cfg.data.file = posixpath.join(app_data, "nfr.data")
            cfg.data.file = posixpath.join(app_data, "nfr")

        for events in (cfg.dns_events, cfg.ip_events, cfg.http_events):
            events.buffer_size = 65535
            events.flush_interval = timedelta(seconds=30)
        return cfg

    def load(self, content: Union[str, bytes, None]) -> None:
        """Overlay settings from YAML text onto this configuration."""
        try:
            data = yaml.safe_load(content) if content else None
        except yaml.YAMLError as exc:
            raise ConfigError(str(exc)) from exc
        if data is None:
            return
        if not isinstance(data, Mapping):
            raise ConfigError("configuration must be a mapping")

        for path, attr, kind, _ in _SCALARS:
            found, value = _lookup(data, path)
            if found:
                target, name = _resolve(self, attr)
                setattr(target, name, _convert(kind, value, ".".join(path)))

        found, monitors = _lookup(data, ("inputs", "monitor"))
        if found:
            if monitors is not None and not isinstance(monitors, list):
                raise ConfigError("inputs.monitor must be a list")
            parsed = []
            for item in monitors or []:
                item = item or {}
                if not isinstance(item, Mapping):
                    raise ConfigError("inputs.monitor items must be mappings")
                parsed.append(
                    Monitor(
                        format=_convert("str", item.get("format"), "format"),
                        type=_convert("str", item.get("type"), "type"),
                        file=_convert("str", item.get("file"), "file"),
                    )
                )
            self.inputs.monitors = parsed

        found, elastic = _lookup(data, ("inputs", "elastic"))
        if found:
            if elastic is not None and not isinstance(elastic, Mapping):
                raise ConfigError("inputs.elastic must be a mapping")
            try:
                self.inputs.elastic = ElasticConfig.from_dict(elastic)
            except (TypeError, ValueError, AttributeError) as exc:
                raise ConfigError(f"inputs.elastic: {exc}") from exc

    def to_dict(self) -> dict[str, Any]:
        """The configuration as the mapping written to a YAML file."""
        result: dict[str, Any] = {}
        for path, attr, kind, omitempty in _SCALARS:
            target, name = _resolve(self, attr)
            value = getattr(target, name)
            if omitempty and not value:
                continue
            node = result
            for key in path[:-1]:
                node = node.setdefault(key, {})
            node[path[-1]] = _export(kind, value)
        inputs = result.setdefault("inputs", {})
        inputs["monitor"] = [
            {"format": m.format, "type": m.type, "file": m.file} for m in self.inputs.monitors
        ]
        inputs["elastic"] = _elastic_to_dict(self.inputs.elastic)
        return _prune(result)

    def save(self, path: Union[str, Path]) -> None:
        """Write the configuration to a YAML file, creating its directory."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True))

    def has_outputs(self) -> bool:
        """True if at least one output is configured and enabled."""
        return self.outputs.enabled and bool(self.outputs.file or self.outputs.graylog_uri)

    def has_inputs(self) -> bool:
        """True if at least one input is configured and enabled."""
        return self.inputs.sniffer_enabled or bool(self.inputs.monitors)

    def validate(self) -> None:
        """Raise ConfigError if the configuration cannot be used."""
        if not (self.has_inputs() or self.has_outputs()):
            raise ConfigError("at least one input or output must be enable")
        if (
            not self.has_outputs()
            and self.has_inputs()
            and not (self.engine.analyze_dns or self.engine.analyze_ip)
        ):
            raise ConfigError("inputs are configured but analysis of dns and ip are set to false")

        if self.inputs.sniffer_enabled:
            if self.inputs.sniffer_interface:
                self.inputs.sniffer_hardware_addr = _interface_by_name(self.inputs.sniffer_interface)
            else:
                name, hardware_addr = _interface_with_public_ip()
                self.inputs.sniffer_interface = name
                self.inputs.sniffer_hardware_addr = hardware_addr

        validate_filename(self.log.file, True)
        if self.log.level not in _LOG_LEVELS:
            raise ConfigError(f"invalid {self.log.level} log level")

        validate_filename(self.data.file, False)

        if self.inputs.elastic.enabled:
            validate_directory(self.data.dir)

        if self.outputs.graylog_uri:
            try:
                host = urlsplit(self.outputs.graylog_uri).netloc.rpartition("@")[2]
            except ValueError as exc:
                raise ConfigError(f"invalid graylog uri {exc}") from exc
            try:
                _split_host_port(host)
            except ValueError as exc:
                raise ConfigError(f"missing port in graylog uri {self.outputs.graylog_uri}") from exc

        if not 0 <= self.outputs.graylog_level <= 7:
            raise ConfigError(f"invalid graylog alert level {self.outputs.graylog_level}")

        if self.outputs.file:
            validate_filename(self.outputs.file, True)

        if self.engine.poll_interval < _MIN_INTERVAL:
            raise ConfigError("events poll interval must be at least 5s")

        for events in (self.dns_events, self.ip_events):
            if events.buffer_size < _MIN_BUFFER_SIZE:
                raise ConfigError("queries buffer size must be at least 64")
            if events.flush_interval < _MIN_INTERVAL:
                raise ConfigError("queries flush interval must be at least 5s")
            if events.failed_file:
                validate_filename(events.failed_file, False)

        for monitor in self.inputs.monitors:
            _validate_monitor(monitor)

        try:
            self.inputs.elastic.validate()
        except ElasticConfigError as exc:
            raise ConfigError(f"elastic configuration: {exc}") from exc

    def load_scope_config(self) -> None:
        """Load scope groups from the scope file, or use the default group."""
        if not self.scope_file:
            self.scope_groups = _default_scope_groups()
        else:
            try:
                content = Path(self.scope_file).read_text()
            except OSError as exc:
                raise ConfigError(f"scope config: {exc}") from exc
            try:
                data = yaml.safe_load(content)
            except yaml.YAMLError as exc:
                raise ConfigError(f"parse scope config: {exc}") from exc
            if data is not None and not isinstance(data, Mapping):
                raise ConfigError("parse scope config: expected a mapping")
            if data and "groups" in data:
                groups = data["groups"] or {}
                if not isinstance(groups, Mapping):
                    raise ConfigError("parse scope config: groups must be a mapping")
                self.scope_groups = {
                    str(name): _parse_scope_group(group) for name, group in groups.items()
                }
        self.validate_scope_config()

    def validate_scope_config(self) -> None:
        """Raise ConfigError if a scope group holds an invalid network or domain."""
        for group in self.scope_groups.values():
            for cidr in (*group.in_scope, *group.out_scope, *group.trusted_ips):
                if not _is_cidr(cidr):
                    raise ConfigError(f"parse scope config: {cidr} is not a cidr")
            for domain in group.trusted_domains:
                if not is_domain_name(domain) and not is_domain_name(domain.removeprefix("*.")):
                    raise ConfigError(f"parse scope config: {domain} is not valid domain name")

    def write_data(self, name: str, data: Union[bytes, str]) -> None:
        """Write a file in the data directory."""
        payload = data.encode() if isinstance(data, str) else data
        (Path(self.data.dir) / name).write_bytes(payload)

    def read_data(self, name: str) -> Optional[bytes]:
        """Read a file in the data directory; None if it does not exist."""
        try:
            return (Path(self.data.dir) / name).read_bytes()
        except FileNotFoundError:
            return None

    def load_timestamp(self, name: str, max_age: timedelta) -> Optional[datetime]:
        """Load a checkpoint timestamp, never older than ``max_age`` before now.

        None is returned when the file is missing or cannot be read.
        """
        try:
            data = self.read_data(name)
        except OSError as exc:
            log.warning("error reading last checkpoint: %s", exc)
            return None
        if data is None:
            log.debug("datafile %s not found, returning zero time", name)
            return None

        ts: Optional[datetime] = None
        try:
            ts = parse_timestamp(data.decode())
        except (ValueError, UnicodeDecodeError) as exc:
            log.warning("corrupted checkpoint data: %s", exc)
        else:
            log.debug("resuming reading from: %s", ts)
        if ts is not None and ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)

        earliest = datetime.now(timezone.utc) - max_age
        if ts is None or ts < earliest:
            log.debug("last checkpoint is too old, moving it to %s", earliest)
            ts = earliest
        return ts

    def save_timestamp(self, name: str, ts: datetime) -> None:
        """Save a checkpoint timestamp in the data directory."""
        self.write_data(name, format_timestamp(ts).encode())


def _validate_monitor(monitor: Monitor) -> None:
    if not (monitor.file or monitor.format or monitor.type):
        return
    if not monitor.format:
        raise ConfigError("empty format for monitoring")
    if not monitor.type:
        raise ConfigError("empty type for monitoring")
    if not monitor.file:
        raise ConfigError("empty file for monitoring")
    if monitor.format not in _MONITOR_FORMATS:
        raise ConfigError(f"unknown format {monitor.format} for monitoring")

    if monitor.type == "dns":
        invalid = False
    elif monitor.type == "ip":
        invalid = monitor.format != "bro"
    elif monitor.type == "http":
        invalid = monitor.format not in ("suricate", "bro")
    else:
        raise ConfigError(f"unknown type {monitor.type} for monitoring")
    if invalid:
        raise ConfigError(f"unsupported type {monitor.type} for {monitor.format} format")


def load_config(path: Optional[Union[str, Path]] = None) -> Config:
    """Read the configuration from a file, or return the defaults without one.

    A configuration read from a file is validated; the defaults are not.
    """
    cfg = Config.default()
    content: Optional[bytes] = None
    if path:
        try:
            content = Path(path).read_bytes()
        except OSError as exc:
            raise ConfigError(f"config: can't read file {exc}") from exc

    try:
        cfg.load(content)
    except ConfigError as exc:
        raise ConfigError(f"config: can't load file {exc}") from exc

    cfg.load_scope_config()

    if not path:
        return cfg

    try:
        cfg.validate()
    except ConfigError as exc:
        raise ConfigError(f"config: {exc}") from exc
    return cfg