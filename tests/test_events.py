from datetime import datetime, timedelta, timezone
import ipaddress

import pytest

from flightrec.api.events import (
    AccountStatusResponse,
    Alert,
    AlertsResponse,
    DNSEntry,
    EventsResponse,
    EventType,
    EventUnified,
    HTTPEntry,
    IPEntry,
    TLSEntry,
    Threat,
    format_timestamp,
    parse_timestamp,
)


def test_event_type_values():
    assert [e.value for e in EventType] == ["dns", "ip", "http", "tls"]
    assert EventType("tls") is EventType.TLS


def test_timestamp_round_trip():
    ts = datetime(2018, 9, 6, 14, 9, 4, 123000, tzinfo=timezone.utc)
    assert parse_timestamp(format_timestamp(ts)) == ts


def test_format_timestamp_trims_fraction_and_uses_z():
    ts = datetime(2018, 9, 6, 14, 9, 4, 123000, tzinfo=timezone.utc)
    assert format_timestamp(ts) == "2018-09-06T14:09:04.123Z"


def test_zero_time_round_trip():
    assert format_timestamp(None) == "0001-01-01T00:00:00Z"
    assert parse_timestamp(format_timestamp(None)) is None


def test_parse_timestamp_truncates_nanoseconds():
    ts = parse_timestamp("2018-09-06T14:09:04.123456789Z")
    assert ts.microsecond == 123456
    assert ts.tzinfo == timezone.utc


def test_parse_timestamp_with_offset():
    ts = parse_timestamp("2018-09-06T14:09:04+02:00")
    assert ts.utcoffset() == timedelta(hours=2)
    assert format_timestamp(ts) == "2018-09-06T14:09:04+02:00"


@pytest.mark.parametrize("text", ["", "yesterday", "2018-09-06 14:09:04", "2018-13-06T14:09:04Z"])
def test_parse_timestamp_rejects_invalid(text):
    with pytest.raises(ValueError):
        parse_timestamp(text)


def test_event_unified_round_trip():
    data = {
        "ts": "2018-09-06T14:09:04.123Z",
        "srcIP": "1.2.3.4",
        "srcPort": 16830,
        "destIP": "4.3.2.1",
        "destPort": 443,
        "proto": "tcp",
        "bytesIn": 744,
        "bytesOut": 1376,
        "query": "virus.com",
        "qtype": "A",
    }
    event = EventUnified.from_dict(data)
    assert event.src_ip == ipaddress.ip_address("1.2.3.4")
    assert event.dest_port == 443
    assert event.to_dict() == data


def test_event_unified_omits_empty_fields():
    assert set(EventUnified().to_dict()) == {"ts", "srcIP"}
    assert EventUnified().to_dict()["srcIP"] == ""


def test_event_unified_rejects_bad_ip():
    with pytest.raises(ValueError):
        EventUnified.from_dict({"srcIP": "not-an-ip"})


def test_alerts_response_from_dict():
    response = AlertsResponse.from_dict(
        {
            "follow": "1",
            "more": True,
            "alerts": [
                {
                    "eventType": "dns",
                    "event": {"srcIP": "1.2.3.4", "query": "virus.com"},
                    "threats": ["c2_comm"],
                    "wisdom": {"flags": ["c2", "young_domain"], "labels": None},
                }
            ],
            "threats": {"c2_comm": {"title": "C2 communication", "severity": 5, "policy": False}},
        }
    )
    assert response.follow == "1"
    assert response.more is True
    alert = response.alerts[0]
    assert alert.event_type == "dns"
    assert alert.event.query == "virus.com"
    assert alert.flags == ["c2", "young_domain"]
    assert alert.labels == []
    assert response.threats["c2_comm"] == Threat(title="C2 communication", severity=5, policy=False)


def test_alerts_response_empty():
    response = AlertsResponse.from_dict({})
    assert response.alerts == [] and response.threats == {} and response.follow == ""


def test_alert_from_dict_rejects_non_object():
    with pytest.raises(TypeError):
        Alert.from_dict(["dns"])


def test_dns_entry_to_dict_keys():
    entry = DNSEntry(src_ip="1.2.3.4", query="virus.com", qtype="A")
    data = entry.to_dict()
    assert set(data) == {"ts", "srcIp", "query", "qtype"}
    assert data["srcIp"] == "1.2.3.4"


def test_ip_entry_to_dict():
    entry = IPEntry(src_ip="1.2.3.4", src_port=16830, dst_ip="4.3.2.1", dst_port=443, protocol="tcp")
    data = entry.to_dict()
    assert data["destIp"] == "4.3.2.1"
    assert data["destPort"] == 443
    assert data["proto"] == "tcp"


def test_http_entry_to_dict():
    entry = HTTPEntry(src_ip="1.2.3.4", url="http://example.com/", method="GET", status=200)
    data = entry.to_dict()
    assert data["url"] == "http://example.com/"
    assert data["status"] == 200
    assert "userAgent" in data


def test_tls_entry_omits_empty_destination():
    data = TLSEntry(src_ip="1.2.3.4").to_dict()
    assert "destIp" not in data and "destPort" not in data and "ja3" not in data
    assert data["validFrom"] == format_timestamp(None)


def test_tls_entry_includes_destination_when_set():
    data = TLSEntry(src_ip="1.2.3.4", dst_ip="4.3.2.1", dst_port=443, ja3s="abc").to_dict()
    assert data["destIp"] == "4.3.2.1"
    assert data["destPort"] == 443
    assert data["ja3s"] == "abc"


def test_events_response_from_dict():
    response = EventsResponse.from_dict({"received": 2, "accepted": 1, "rejected": {"bad": 1}})
    assert (response.received, response.accepted, response.rejected) == (2, 1, {"bad": 1})


def test_account_status_from_dict():
    status = AccountStatusResponse.from_dict(
        {"registered": True, "expired": False, "messages": [{"level": 1, "body": "hello"}]}
    )
    assert status.registered is True
    assert status.expired is False
    assert status.messages == [{"level": 1, "body": "hello"}]