"""Shared serialization helpers for camelCase wire payloads.

Provides ``snake_to_camel`` for Pydantic alias generators and a
``CamelModel`` base so every model that crosses the HTTP or
WebSocket boundary uses the same key style as the extension.
"""

from __future__ import annotations

from typing import Any

import pydantic


def snake_to_camel(name: str) -> str:
    """Convert a snake_case string to camelCase.

    Args:
        name: A snake_case identifier such as ``"no_headers"``.

    Returns:
        The camelCase equivalent, e.g. ``"noHeaders"``.
    """
    parts = name.split("_")
    return parts[0] + "".join(w.capitalize() for w in parts[1:])


class CamelModel(pydantic.BaseModel):
    """Base model that reads and writes camelCase keys."""

    model_config = pydantic.ConfigDict(
        alias_generator=snake_to_camel, populate_by_name=True
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump to a JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
