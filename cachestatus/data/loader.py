"""
Data loader for reference tables shipped with the package.

The JSON data files live alongside this module.  Each table is
loaded on first use and cached for the life of the process.
"""

from __future__ import annotations

import json
import pathlib
from typing import Any

# Resolve path to the data directory (same directory as this module)
_DATA_DIR = pathlib.Path(__file__).resolve().parent

# ============================================================================
# JSON File Loading
# ============================================================================


def _load_json(relative_path: str) -> Any:
    """Load and parse a JSON file relative to the data directory.

    Raises:
        FileNotFoundError: If the JSON file does not exist.
        json.JSONDecodeError: If the file contains invalid JSON.
    """
    full_path = _DATA_DIR / relative_path
    if not full_path.exists():
        raise FileNotFoundError(f"Data file not found: {relative_path}")
    with open(full_path, encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as exc:
            raise json.JSONDecodeError(
                f"Invalid JSON in {relative_path}: {exc.msg}",
                exc.doc,
                exc.pos,
            ) from exc


# ============================================================================
# Edge Locations
# ============================================================================

_edge_locations: dict[str, str] | None = None


def get_edge_locations() -> dict[str, str]:
    """IATA code to city name for CDN points of presence (lazy loaded and cached)."""
    global _edge_locations
    if _edge_locations is None:
        raw: dict[str, str] = _load_json("edge-locations.json")
        _edge_locations = {code.upper(): city for code, city in raw.items()}
    return _edge_locations
