"""Entry point for `python -m k8swatch`.

Usage:
    python -m k8swatch
    uv run python -m k8swatch
"""

from __future__ import annotations

import asyncio

from k8swatch.app import main

asyncio.run(main())
