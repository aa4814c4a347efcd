import base64
import json

import pytest
import requests
import responses

from flightrec.api.client import (
    DEFAULT_USER_AGENT,
    DEFAULT_VERSION,
    AlphaSOCClient,
    ApiError,
    NoAPIKeyError,
    NoRequestError,
    TooManyRequestsError,
)
from flightrec.api.events import (
    AccountStatusResponse,
    AlertsResponse,
    DNSEntry,
    HTTPEntry,
    IPEntry,
    TLSEntry,
)

HOST = "http://api.example.com"
API_KEY = "placeholder"


def url(path):
    return f"{HOST}/{DEFAULT_VERSION}/{path}"


@pytest.fixture
def api():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def test_check_key(api):
    api.add(responses.GET, url("account/status"), json={"message": "bad key"}, status=401)
    with pytest.raises(ApiError, match="bad key"):
        AlphaSOCClient(HOST, API_KEY).check_key()
    assert api.calls[0].request.url == url("account/status")
    with pytest.raises(NoAPIKeyError):
        AlphaSOCClient(HOST, "").check_key()


def test_set_key_used_for_basic_auth(api):
    api.add(responses.GET, url("alerts"), json={})
    client = AlphaSOCClient(HOST, "")
    client.key = API_KEY
    client.alerts("")
    expected = "Basic " + base64.b64encode(f"{API_KEY}:".encode()).decode()
    assert api.calls[0].request.headers["Authorization"] == expected


def test_host_trailing_slash_removed():
    assert AlphaSOCClient(HOST + "/", API_KEY).host == HOST


def test_user_agent(api):
    api.add(responses.GET, url("alerts"), json={"follow": "1"})
    result = AlphaSOCClient(HOST, API_KEY).alerts("")
    assert result == AlertsResponse(follow="1")
    assert api.calls[0].request.headers["User-Agent"] == DEFAULT_USER_AGENT


def test_response_status_not_ok(api):
    api.add(responses.GET, url("alerts"), body="", status=500)
    with pytest.raises(ApiError):
        AlphaSOCClient(HOST, API_KEY).alerts("")


def test_response_error_message(api):
    api.add(responses.GET, url("alerts"), json={"message": "test-error"}, status=500)
    with pytest.raises(ApiError) as info:
        AlphaSOCClient(HOST, API_KEY).alerts("")
    assert str(info.value) == "test-error"


def test_too_many_requests(api):
    api.add(responses.GET, url("alerts"), body="", status=429)
    with pytest.raises(TooManyRequestsError):
        AlphaSOCClient(HOST, API_KEY).alerts("")


def test_timeout_reported(api):
    api.add(responses.GET, url("alerts"), body=requests.exceptions.ConnectTimeout())
    with pytest.raises(ApiError, match="i/o timeout"):
        AlphaSOCClient(HOST, API_KEY).alerts("")


def test_invalid_request_url():
    with pytest.raises(ApiError):
        AlphaSOCClient("", API_KEY).alerts("")


def test_account_register(api):
    api.add(responses.POST, url("account/register"), json={"message": "exists"}, status=400)
    with pytest.raises(ApiError, match="exists"):
        AlphaSOCClient(HOST, API_KEY).account_register("test-name", "Test <test@example.com>")
    request = api.calls[0].request
    assert request.method == "POST"
    assert json.loads(request.body) == {"details": {"name": "test-name", "email": "test@example.com"}}


def test_account_register_fail():
    client = AlphaSOCClient(HOST, API_KEY)
    with pytest.raises(ValueError):
        client.account_register("", "")
    with pytest.raises(ValueError):
        client.account_register("test-name", "")
    with pytest.raises(ValueError):
        client.account_register("test-name", "test-emailalphasoc.com")


def test_account_status(api):
    api.add(responses.GET, url("account/status"), json={"registered": True, "expired": False})
    status = AlphaSOCClient(HOST, API_KEY).account_status()
    assert status == AccountStatusResponse(registered=True, expired=False)
    assert api.calls[0].request.url == url("account/status")


def test_account_status_fail(api):
    api.add(responses.GET, url("account/status"), json={"message": "no key"}, status=400)
    with pytest.raises(ApiError, match="no key"):
        AlphaSOCClient(HOST, API_KEY).account_status()


def test_account_status_no_key():
    with pytest.raises(NoAPIKeyError):
        AlphaSOCClient("", "").account_status()


def test_account_status_invalid_json(api):
    api.add(responses.GET, url("account/status"), body="")
    with pytest.raises(ApiError, match="json decoding error"):
        AlphaSOCClient(HOST, API_KEY).account_status()


def test_alerts(api):
    api.add(responses.GET, url("alerts"), json={"follow": "2", "more": False})
    result = AlphaSOCClient(HOST, API_KEY).alerts("")
    assert result.follow == "2"
    assert api.calls[0].request.method == "GET"


def test_alerts_follow(api):
    api.add(responses.GET, url("alerts"), json={"follow": "1", "more": True})
    result = AlphaSOCClient(HOST, API_KEY).alerts("1")
    assert result == AlertsResponse(follow="1", more=True)
    assert api.calls[0].request.url.endswith("?follow=1")


def test_alerts_fail(api):
    api.add(responses.GET, url("alerts"), json={"message": "no key"}, status=400)
    with pytest.raises(ApiError, match="no key"):
        AlphaSOCClient(HOST, API_KEY).alerts("")


def test_alerts_no_key():
    with pytest.raises(NoAPIKeyError):
        AlphaSOCClient("", "").alerts("")


def test_alerts_invalid_json(api):
    api.add(responses.GET, url("alerts"), body="")
    with pytest.raises(ApiError):
        AlphaSOCClient(HOST, API_KEY).alerts("")


def test_events_dns(api):
    api.add(responses.POST, url("events/dns"), json={"received": 2, "accepted": 2})
    result = AlphaSOCClient(HOST, API_KEY).events_dns([DNSEntry(), DNSEntry()])
    assert result.received == 2
    request = api.calls[0].request
    assert request.method == "POST"
    lines = request.body.decode().splitlines()
    assert len(lines) == 2
    assert json.loads(lines[0]) == {
        "ts": "0001-01-01T00:00:00Z", "srcIp": "", "query": "", "qtype": ""
    }


def test_events_dns_no_request():
    with pytest.raises(NoRequestError):
        AlphaSOCClient(HOST, API_KEY).events_dns(None)


def test_events_dns_no_key():
    with pytest.raises(NoAPIKeyError):
        AlphaSOCClient("", "").events_dns(None)


def test_events_dns_fail(api):
    api.add(responses.POST, url("events/dns"), json={"message": "no key"}, status=400)
    with pytest.raises(ApiError, match="no key"):
        AlphaSOCClient(HOST, API_KEY).events_dns([DNSEntry()])


def test_events_ip(api):
    api.add(responses.POST, url("events/ip"), json={})
    result = AlphaSOCClient(HOST, API_KEY).events_ip([])
    assert result.received == 0
    assert api.calls[0].request.url == url("events/ip")


def test_events_ip_no_key():
    with pytest.raises(NoAPIKeyError):
        AlphaSOCClient("", "").events_ip(None)


def test_events_ip_no_request():
    with pytest.raises(NoRequestError):
        AlphaSOCClient(HOST, API_KEY).events_ip(None)


def test_events_ip_invalid_json(api):
    api.add(responses.POST, url("events/ip"), body="")
    with pytest.raises(ApiError):
        AlphaSOCClient(HOST, API_KEY).events_ip([IPEntry()])


def test_events_http(api):
    api.add(responses.POST, url("events/http"), json={"received": 1, "accepted": 1})
    result = AlphaSOCClient(HOST, API_KEY).events_http([HTTPEntry(url="http://example.com/")])
    assert result.accepted == 1
    assert json.loads(api.calls[0].request.body)["url"] == "http://example.com/"


def test_events_http_requires_entries():
    with pytest.raises(NoRequestError):
        AlphaSOCClient(HOST, API_KEY).events_http([])


def test_events_tls(api):
    api.add(responses.POST, url("events/tls"), json={"received": 1, "rejected": {"bad": 1}})
    result = AlphaSOCClient(HOST, API_KEY).events_tls([TLSEntry(src_ip="1.2.3.4")])
    assert result.rejected == {"bad": 1}
    assert api.calls[0].request.url == url("events/tls")


def test_events_tls_requires_entries():
    with pytest.raises(NoRequestError):
        AlphaSOCClient(HOST, API_KEY).events_tls(None)


def test_key_request(api):
    api.add(responses.POST, url("key/request"), json={"key": "placeholder"})
    assert AlphaSOCClient(HOST, "").key_request() == "placeholder"
    body = json.loads(api.calls[0].request.body)
    assert body["platform"]["name"].startswith("nfr-")


def test_key_request_fail(api):
    api.add(responses.POST, url("key/request"), json={"message": "no key"}, status=400)
    with pytest.raises(ApiError, match="no key"):
        AlphaSOCClient(HOST, "").key_request()


def test_key_request_invalid_json(api):
    api.add(responses.POST, url("key/request"), body="")
    with pytest.raises(ApiError):
        AlphaSOCClient(HOST, "").key_request()


def test_key_reset(api):
    api.add(responses.POST, url("key/reset"), json={"message": "unknown email"}, status=404)
    with pytest.raises(ApiError, match="unknown email"):
        AlphaSOCClient(HOST, "").key_reset("test@example.com")
    request = api.calls[0].request
    assert request.method == "POST"
    assert json.loads(request.body) == {"email": "test@example.com"}


def test_key_reset_fail(api):
    api.add(responses.POST, url("key/reset"), json={"message": "no key"}, status=400)
    with pytest.raises(ApiError, match="no key"):
        AlphaSOCClient(HOST, "").key_reset(None)