"""Entry point for `python -m gwgraph`.

Usage:
    GWGRAPH_SNAPSHOT_PATH=cluster.json python -m gwgraph
"""

from __future__ import annotations

import asyncio

from gwgraph.app import main

asyncio.run(main())
