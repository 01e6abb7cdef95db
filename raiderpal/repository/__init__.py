"""Repository layer: view reads through the row store (SQLite locally, PostgREST hosted).

Keep functions thin and focused, so services/routes never build queries themselves.
"""
from __future__ import annotations
