"""
NexaNotes Backstage Test Suite.

This package contains:
- unit/: Unit tests (in-memory store, no network)
- integration/: Integration tests (SQLite store, HTTP gateway)
"""
