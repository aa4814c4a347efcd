# flightrec

flightrec is a toolkit for working with the AlphaSOC Engine, which analyses
network telemetry (DNS, IP, HTTP and TLS events) and raises alerts. It
provides:

- an HTTP client for the Engine API (`flightrec.api.client`) and the data
  types it sends and receives (`flightrec.api.events`);
- loading, defaults and validation of the YAML configuration file
  (`flightrec.config`);
- configuration and search-query building for pulling telemetry out of
  Elasticsearch indices laid out in the ECS or Corelight schemas
  (`flightrec.elastic.config`, `flightrec.elastic.query`,
  `flightrec.elastic.errors`);
- mapping of Engine alerts to events and formatting them as JSON or CEF lines
  (`flightrec.alerts.model`, `flightrec.alerts.formatters`);
- a small command line tool (`flightrec.cli`).

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Command line

The `flightrec` command reads its settings from a YAML configuration file,
`/etc/nfr/config.yml` by default (`%APPDATA%/nfr/config.yml` on Windows).
Pass `-c`/`--config` to use another one.

```
flightrec version
flightrec account status
flightrec account reset someone@example.com
flightrec -c ./config.yml account status
```

`version` prints the version string. `account status` prints whether the
configured API key is registered and whether its licence has expired.
`account reset` asks the Engine to mail a key reset link to the given address.
Errors are printed to standard error and the command exits with status 1.

## Configuration

A minimal configuration file:

```yaml
engine:
  host: https://api.alphasoc.net
  api_key: placeholder
  alerts:
    poll_interval: 5m
log:
  file: stdout
  level: info
outputs:
  enabled: true
  file: stderr
  format: json
dns_events:
  buffer_size: 65535
  flush_interval: 30s
```

Anything left out falls back to the defaults from `Config.default()`.
Durations are written as `300ms`, `30s`, `5m`, `1h30m` and so on. Scope
groups (in-scope networks, trusted domains and IPs) come from the file named by
`scope.file`; without one a default group covering private address space is
used. A configuration loaded from a file is validated: among other things the
sniffer interface must exist (or one with a public address is picked), the log
level must be one of `debug`, `info`, `warn`, `error`, and intervals must be at
least five seconds.

```python
from flightrec.config import load_config, ConfigError

try:
    cfg = load_config("config.yml")
except ConfigError as exc:
    print(f"bad configuration: {exc}")
else:
    print(cfg.engine.host, cfg.log.level, sorted(cfg.scope_groups))
```

`Config` also keeps small files in its data directory (`write_data`,
`read_data`) and checkpoint timestamps (`save_timestamp`, `load_timestamp`).

## Talking to the Engine

```python
from flightrec.api.client import AlphaSOCClient, ApiError, NoAPIKeyError

client = AlphaSOCClient("https://api.alphasoc.net", "placeholder")
status = client.account_status()
print(status.registered, status.expired)

response = client.alerts("")
for alert in response.alerts:
    print(alert.event_type, alert.threats)
```

Telemetry is sent with `events_dns`, `events_ip`, `events_http` and
`events_tls`, each taking a list of `DNSEntry`, `IPEntry`, `HTTPEntry` or
`TLSEntry` objects and returning an `EventsResponse` with received, accepted
and rejected counts. A `429 Too Many Requests` answer raises
`TooManyRequestsError`; other failures raise `ApiError`.

## Formatting alerts

```python
from flightrec.alerts.formatters import CEFFormatter, JSONFormatter
from flightrec.alerts.model import AlertMapper

mapper = AlertMapper(lambda ip: [("office", "Office network")])
batch = mapper.map(client.alerts(""))

cef = CEFFormatter()
for event in batch.events:
    for line in cef.format(event):
        print(line.decode())
    print(JSONFormatter().format(event)[0].decode())
```

`CEFFormatter` writes one line per threat, with the severity doubled to the
0–10 CEF scale. The group lookup given to `AlertMapper` is optional; it
receives the event's source IP and returns `(name, label)` pairs.

## Elasticsearch searches

```python
from flightrec.elastic.config import ElasticConfig, config_fingerprint
from flightrec.elastic.query import build_search_query

es_config = ElasticConfig.from_dict({
    "enabled": True,
    "hosts": ["http://localhost:9200"],
    "searches": [
        {"event_type": "dns", "indices": ["filebeat-*"], "index_schema": "ecs"},
    ],
})
es_config.validate()

search = es_config.searches[0]
body = build_search_query(search)          # events ingested in the last 5 minutes
print(config_fingerprint(es_config, search))
```

`flightrec.elastic.errors.check_response` turns an error answer from an
Elasticsearch instance (any object with `status_code` and `text`) into an
`ElasticAPIError`.

## What this package does not do

- It does not capture network traffic, tail log files or read pcap files; the
  `inputs` settings are loaded and validated but nothing here acts on them.
- It does not connect to Elasticsearch or run searches; it builds the search
  body and validates the configuration, and the HTTP exchange is left to the
  caller.
- It does not poll the Engine for alerts on a schedule, and it has no writers
  for files, syslog or Graylog; formatted alert lines are returned as bytes
  for the caller to deliver.
- The command line has only `version`, `account status` and `account reset`.