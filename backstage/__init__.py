"""
NexaNotes Backstage - state, identity and authorization for NexaNotes.

This package is the single place where application state changes:
- Users, sessions and pending role grants
- Notes (one indexed collection, secondary index by owner)
- Discussion communities, threads, posts and likes
- Publications (announcement board) and their review workflow
- The singleton web configuration

Architecture:
    ┌─────────────┐     ┌──────────────┐     ┌──────────────────┐
    │  UI / HTTP  │────▶│   Services   │────▶│ PersistentStore  │
    │   gateway   │     │ (+ AccessPol)│     │  (prefixed JSON) │
    └─────────────┘     └──────┬───────┘     └────────┬─────────┘
                               │                      │
                               ▼                      ▼
                        ┌─────────────┐      ┌─────────────────┐
                        │ GenAiClient │      │ KeyValueStore   │
                        │  (httpx)    │      │ memory / sqlite │
                        └─────────────┘      └─────────────────┘

Invariants:
    - Every role check happens in the service layer, never in the caller
    - Storage failures are logged and absorbed, never raised to callers
    - Exactly one user record per email, one web config record
    - Operations run to completion one at a time

How to change safely:
    - Persisted field names are camelCase and shared with existing installs
    - Changing a persisted shape requires a migration in storage.migrations
    - New role-gated operations must go through AccessPolicy.require

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
