from __future__ import annotations

from sessiontodo.config import build_store, load_config

from .app import create_app

_store = build_store(load_config())
app = create_app(_store)
