"""Elasticsearch telemetry input: search configuration, query building and API errors."""