"""Data models for the security gate."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class GateAction(str, Enum):
    """Decision the gate reaches for a piece of SQL or identifier text."""

    ALLOW = "allow"
    REJECT = "reject"


class GateVerdict(BaseModel):
    """The gate's decision, with the reason for a rejection."""

    action: GateAction
    reason: str = Field(default="", description="Human-readable rejection reason.")
    keyword: str | None = Field(
        default=None,
        description="The write keyword that triggered a rejection, if any.",
    )

    @property
    def allowed(self) -> bool:
        return self.action == GateAction.ALLOW

    @classmethod
    def allow(cls) -> GateVerdict:
        return cls(action=GateAction.ALLOW)

    @classmethod
    def reject(cls, reason: str, *, keyword: str | None = None) -> GateVerdict:
        return cls(action=GateAction.REJECT, reason=reason, keyword=keyword)
