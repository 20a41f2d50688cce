"""Transports — stdio (sequential) and HTTP (concurrent) request channels."""

from dbhub.transport.base import MCPTransport, TransportKind
from dbhub.transport.http import HttpTransport
from dbhub.transport.stdio import StdioTransport

__all__ = [
    "HttpTransport",
    "MCPTransport",
    "StdioTransport",
    "TransportKind",
]
