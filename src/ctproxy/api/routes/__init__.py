"""API routes package.

- configs: Config registry CRUD and activation
- engine: Engine up/down/ping
- status: Status indicator snapshot
- events: SSE endpoint
"""

from __future__ import annotations

__all__ = ["configs", "engine", "events", "status"]

from . import configs, engine, events, status
