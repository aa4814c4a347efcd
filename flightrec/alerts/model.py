"""Alerts as reported to outputs, built from the engine's alert responses."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Callable, Iterable, Optional

from flightrec.api.events import AlertsResponse, EventUnified, IPAddress
from flightrec.api.events import Threat as ApiThreat

# Maps a source IP to the (name, label) pairs of the groups it belongs to.
GroupLookup = Callable[[Optional[IPAddress]], Iterable[tuple[str, str]]]


@dataclass
class Threat:
    """A threat raised for an event."""

    severity: int = 0
    description: str = ""
    policy: bool = False


@dataclass
class Group:
    """A group the event's source belongs to."""

    label: str = ""
    description: str = ""


@dataclass
class Event(EventUnified):
    """A network event together with the threats found in it."""

    severity: int = 0
    threats: dict[str, Threat] = field(default_factory=dict)
    flags: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    groups: list[Group] = field(default_factory=list)
    event_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        threats = {}
        for tid, threat in self.threats.items():
            threats[tid] = {"severity": threat.severity, "desc": threat.description}
            if threat.policy:
                threats[tid]["policy"] = True
        result: dict[str, Any] = {"severity": self.severity, "threats": threats, "flags": list(self.flags)}
        if self.labels:
            result["labels"] = list(self.labels)
        result["groups"] = [{"label": g.label, "desc": g.description} for g in self.groups]
        result["eventType"] = self.event_type
        result.update(super().to_dict())
        return result


@dataclass
class AlertBatch:
    """A page of alert events with the marker to continue from."""

    follow: str = ""
    more: bool = False
    events: list[Event] = field(default_factory=list)


class AlertMapper:
    """Turns engine alert responses into events, adding the source's groups."""

    def __init__(self, group_lookup: Optional[GroupLookup] = None) -> None:
        self.group_lookup = group_lookup

    def map(self, response: AlertsResponse) -> AlertBatch:
        """Map an alerts response to a batch of events."""
        events = []
        for alert in response.alerts:
            unified = {f.name: getattr(alert.event, f.name) for f in fields(EventUnified)}
            event = Event(**unified, event_type=alert.event_type,
                          flags=list(alert.flags), labels=list(alert.labels))
            for tid in alert.threats:
                source = response.threats.get(tid, ApiThreat())
                event.threats[tid] = Threat(source.severity, source.title, source.policy)
                event.severity = max(event.severity, source.severity)
            if self.group_lookup is not None:
                event.groups = [Group(name, label) for name, label in self.group_lookup(alert.event.src_ip)]
            events.append(event)
        return AlertBatch(follow=response.follow, more=response.more, events=events)


__all__ = ["Threat", "Group", "Event", "AlertBatch", "AlertMapper", "asdict"]