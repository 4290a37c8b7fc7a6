"""
Resolution of a connection id into a decrypted ``ConnectionDescriptor``.

Stored connections and secret decryption belong to other services; the
resolvers here cover tests and local development.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import yaml
from pydantic import ValidationError

from insight_engine.errors import ConnectionNotFound, InvalidRequest

from .descriptor import ConnectionDescriptor


class CredentialResolver(Protocol):
    async def resolve(self, connection_id: str) -> ConnectionDescriptor:
        ...


class InMemoryCredentialResolver:
    def __init__(self, connections: Optional[Mapping[str, ConnectionDescriptor]] = None) -> None:
        self._connections: Dict[str, ConnectionDescriptor] = dict(connections or {})

    def register(self, connection_id: str, descriptor: ConnectionDescriptor) -> None:
        self._connections[connection_id] = descriptor

    async def resolve(self, connection_id: str) -> ConnectionDescriptor:
        descriptor = self._connections.get(connection_id)
        if descriptor is None:
            raise ConnectionNotFound(f"Connection '{connection_id}' not found.")
        return descriptor


def _expand(value: Any) -> Any:
    if isinstance(value, str):
        return os.path.expandvars(value)
    return value


def parse_connections_payload(payload: Mapping[str, Any]) -> Dict[str, ConnectionDescriptor]:
    """
    Parse ``{"connections": {id: {dialect, host, port, database, ...}}}``.
    String values may reference environment variables (``${PG_PASSWORD}``).
    """
    raw = payload.get("connections")
    if not isinstance(raw, Mapping):
        raise InvalidRequest("Connections file must define a 'connections' mapping.")

    connections: Dict[str, ConnectionDescriptor] = {}
    for connection_id, entry in raw.items():
        if not isinstance(entry, Mapping):
            raise InvalidRequest(f"Connection '{connection_id}' must be a mapping.")
        try:
            connections[str(connection_id)] = ConnectionDescriptor.model_validate(
                {key: _expand(value) for key, value in entry.items()}
            )
        except ValidationError as exc:
            raise InvalidRequest(f"Connection '{connection_id}' is invalid: {exc}") from exc
    return connections


class YamlCredentialResolver(InMemoryCredentialResolver):
    def __init__(self, path: str | Path) -> None:
        path = Path(path)
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise InvalidRequest(f"Unable to parse connections file {path}: {exc}") from exc
        if not isinstance(payload, Mapping):
            raise InvalidRequest("Connections file must be a mapping.")
        super().__init__(parse_connections_payload(payload))
