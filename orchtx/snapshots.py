"""Helpers for turning raw contract storage into readable snapshots."""

from __future__ import annotations

from typing import Iterable

__all__ = ["parse_storage"]


def parse_storage(storage: Iterable[tuple[bytes, bytes]]) -> list[tuple[str, str]]:
    """Decode key/value storage pairs to text, replacing invalid UTF-8."""
    return [
        (
            bytes(key).decode("utf-8", errors="replace"),
            bytes(value).decode("utf-8", errors="replace"),
        )
        for key, value in storage
    ]