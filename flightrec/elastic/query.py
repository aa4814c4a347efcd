"""Construction of the search query sent to an Elasticsearch instance."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from flightrec.api.events import format_timestamp
from flightrec.elastic.config import ConfigError, SearchConfig

_DOC_VALUE_FORMAT = "strict_date_time"


def must_exist_fields(fields: Iterable[str]) -> list[dict[str, Any]]:
    """Query fragments requiring each of the fields to exist."""
    return [{"exists": {"field": name}} for name in fields]


def build_search_query(
    search: SearchConfig,
    newest_ingested: Optional[datetime] = None,
    search_after: Optional[Sequence[Any]] = None,
    pit_id: Optional[str] = None,
) -> dict[str, Any]:
    """Build the search body for events ingested since ``newest_ingested``.

    Without ``newest_ingested`` the last five minutes are searched.
    """
    fn = search.final_field_names()

    doc_value_fields = [{"field": fn.timestamp, "format": _DOC_VALUE_FORMAT}]
    if fn.timestamp != fn.event_ingested:
        doc_value_fields.append({"field": fn.event_ingested, "format": _DOC_VALUE_FORMAT})

    source = search.event_fields()

    if newest_ingested is None:
        range_field: dict[str, str] = {"gte": "now-5m"}
    else:
        range_field = {"gte": format_timestamp(newest_ingested)}
        if search.timestamp_format:
            range_field["format"] = search.timestamp_format

    filters: list[Any] = []
    terms = search.final_search_term()
    if terms:
        try:
            filters.append(json.loads(terms))
        except ValueError as exc:
            raise ConfigError("search term must be valid json") from exc
    filters.append({"range": {fn.event_ingested: range_field}})

    bool_query: dict[str, Any] = {}
    must = must_exist_fields(search.final_must_have_fields())
    if must:
        bool_query["must"] = must
    bool_query["filter"] = filters

    query: dict[str, Any] = {
        "docvalue_fields": doc_value_fields,
        "_source": source,
        "size": search.batch_size,
        "query": {"bool": bool_query},
        "sort": [{fn.event_ingested: "asc"}, {"_id": "asc"}],
    }
    if pit_id:
        query["pit"] = {"id": pit_id}
    if search_after:
        query["search_after"] = list(search_after)
    return query