from .credentials import (
    CredentialResolver,
    InMemoryCredentialResolver,
    YamlCredentialResolver,
    parse_connections_payload,
)
from .descriptor import ConnectionDescriptor, SqlDialect, SqlDialectDriverMap
from .pool import PoolHandle, PoolRegistry

__all__ = [
    "CredentialResolver",
    "InMemoryCredentialResolver",
    "YamlCredentialResolver",
    "parse_connections_payload",
    "ConnectionDescriptor",
    "SqlDialect",
    "SqlDialectDriverMap",
    "PoolHandle",
    "PoolRegistry",
]
