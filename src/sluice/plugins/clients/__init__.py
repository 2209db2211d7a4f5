"""Clients for external systems."""

from sluice.plugins.clients.http import SearchHTTPClient

__all__ = ["SearchHTTPClient"]
