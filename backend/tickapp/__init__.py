"""Tick signal engine application: services, clients and HTTP/WebSocket API."""
