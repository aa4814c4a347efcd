"""Network flight recorder toolkit: Engine API client, configuration, Elasticsearch queries and alert formatting."""

__version__ = "0.1.0"