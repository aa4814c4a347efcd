import json
from datetime import datetime, timezone

from flightrec.alerts.formatters import CEFFormatter, JSONFormatter
from flightrec.alerts.model import Event, Group, Threat


def _timestamp():
    return datetime.fromtimestamp(1536242944, timezone.utc).replace(microsecond=123000)


def _threats():
    return {
        "c2_comm": Threat(severity=5, description="C2 communication"),
        "interesting": Threat(severity=2, description="Interesting event"),
    }


def _sorted_lines(lines):
    return sorted(line.decode() for line in lines)


def test_cef_dns():
    event = Event(
        event_type="dns",
        flags=["c2", "young_domain"],
        groups=[Group(label="boston")],
        threats=_threats(),
        timestamp=_timestamp(),
        src_ip="1.2.3.4",
        query="virus.com",
        query_type="A",
    )
    assert _sorted_lines(CEFFormatter().format(event)) == [
        "CEF:0|AlphaSOC|NFR|0.0.0|c2_comm|C2 communication|10|app=dns rt=Sep 06 2018 14:09:04.123 UTC src=1.2.3.4 cs1=c2,young_domain cs1Label=flags cs2=boston cs2Label=groups query=virus.com requestMethod=A",
        "CEF:0|AlphaSOC|NFR|0.0.0|interesting|Interesting event|4|app=dns rt=Sep 06 2018 14:09:04.123 UTC src=1.2.3.4 cs1=c2,young_domain cs1Label=flags cs2=boston cs2Label=groups query=virus.com requestMethod=A",
    ]


def test_cef_ip():
    event = Event(
        event_type="ip",
        flags=["c2", "young_domain"],
        groups=[Group(label="boston")],
        threats=_threats(),
        timestamp=_timestamp(),
        src_ip="1.2.3.4",
        src_port=16830,
        dest_ip="4.3.2.1",
        dest_port=443,
        proto="tcp",
        bytes_in=744,
        bytes_out=1376,
    )
    assert _sorted_lines(CEFFormatter().format(event)) == [
        "CEF:0|AlphaSOC|NFR|0.0.0|c2_comm|C2 communication|10|app=ip rt=Sep 06 2018 14:09:04.123 UTC src=1.2.3.4 cs1=c2,young_domain cs1Label=flags cs2=boston cs2Label=groups spt=16830 dst=4.3.2.1 dpt=443 proto=tcp in=744 out=1376",
        "CEF:0|AlphaSOC|NFR|0.0.0|interesting|Interesting event|4|app=ip rt=Sep 06 2018 14:09:04.123 UTC src=1.2.3.4 cs1=c2,young_domain cs1Label=flags cs2=boston cs2Label=groups spt=16830 dst=4.3.2.1 dpt=443 proto=tcp in=744 out=1376",
    ]


def test_cef_without_flags_or_groups():
    event = Event(
        event_type="dns",
        threats={"c2_comm": Threat(severity=5, description="C2 communication")},
        timestamp=_timestamp(),
        src_ip="1.2.3.4",
        query="virus.com",
        query_type="A",
    )
    assert CEFFormatter().format(event) == [
        b"CEF:0|AlphaSOC|NFR|0.0.0|c2_comm|C2 communication|10|app=dns rt=Sep 06 2018 14:09:04.123 UTC src=1.2.3.4 query=virus.com requestMethod=A"
    ]


def test_cef_escapes_header_and_extension():
    event = Event(
        event_type="dns",
        threats={"t": Threat(severity=1, description="a|b")},
        timestamp=_timestamp(),
        src_ip="1.2.3.4",
        query="x=y",
        query_type="A",
    )
    (line,) = CEFFormatter(vendor="V", product="P", version="1").format(event)
    assert line.startswith(b"CEF:0|V|P|1|t|a\\|b|2|")
    assert b"query=x\\=y" in line


def test_cef_no_threats_gives_no_lines():
    assert CEFFormatter().format(Event(event_type="dns", src_ip="1.2.3.4")) == []


def test_json_formatter_round_trip():
    event = Event(
        event_type="dns",
        flags=["c2"],
        threats=_threats(),
        timestamp=_timestamp(),
        src_ip="1.2.3.4",
        query="virus.com",
    )
    lines = JSONFormatter().format(event)
    assert len(lines) == 1
    assert b"\n" not in lines[0]
    assert json.loads(lines[0]) == event.to_dict()