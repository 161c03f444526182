"""REST API layer for gwgraph.

Exposes:
    create_app -- FastAPI application factory.
    build_app  -- Alias for create_app (used by gwgraph.app bootstrap).
"""

from gwgraph.api.app import create_app

build_app = create_app

__all__ = ["build_app", "create_app"]
