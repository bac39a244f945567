from __future__ import annotations

from pathlib import Path

from inferload.storage.duckdb_store import Storage

DEFAULT_DB_PATH = Path(".inferload/inferload.duckdb")

__all__ = ["DEFAULT_DB_PATH", "Storage"]
