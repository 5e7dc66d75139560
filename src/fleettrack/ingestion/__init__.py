"""Ingestion layer.

Adapters that turn raw backend payloads into typed records. Nothing in
this package talks to the map surface.
"""

__all__: list[str] = []
