"""HTTP surface of the WorldCat pool."""

from __future__ import annotations

from WorldcatPool.api.app import create_app

__all__ = ["create_app"]
