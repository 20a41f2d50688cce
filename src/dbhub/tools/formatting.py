"""Render adapter results as human-readable text blocks."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel


def pretty_json(payload: Any) -> str:
    """Two-space indented JSON; values JSON cannot encode are stringified."""
    return json.dumps(_plain(payload), indent=2, default=str, ensure_ascii=False)


def _plain(payload: Any) -> Any:
    if isinstance(payload, BaseModel):
        return payload.model_dump()
    if isinstance(payload, list):
        return [_plain(item) for item in payload]
    return payload
