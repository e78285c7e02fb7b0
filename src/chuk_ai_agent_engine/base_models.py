# chuk_ai_agent_engine/base_models.py
"""Base model for statistics records that callers may read like dicts."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class DictCompatModel(BaseModel):
    """Base for stats and usage records.

    Supports ``stats["calls"]``, ``"calls" in stats`` and ``stats.get("calls")``
    so report consumers can treat aggregates as plain mappings, and compares
    equal to a dict holding the same field values.
    """

    def __getitem__(self, key: str) -> Any:
        if key not in self:
            raise KeyError(key)
        return getattr(self, key)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        cls = type(self)
        return key in cls.model_fields or key in cls.model_computed_fields

    def get(self, key: str, default: Any = None) -> Any:
        if key in self:
            return getattr(self, key)
        return default

    def __eq__(self, other: object) -> bool:
        if isinstance(other, dict):
            return self.model_dump() == other
        return super().__eq__(other)

    __hash__ = None  # type: ignore[assignment]
