"""Vault event records broadcast after committed operations."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class VaultEventType(str, Enum):
    """Kind of committed vault operation."""

    INITIALIZED = "initialized"
    DEPOSITED = "deposited"
    PRICE_RECORDED = "price_recorded"
    REBALANCE_STAGED = "rebalance_staged"
    REBALANCED = "rebalanced"
    FEES_HARVESTED = "fees_harvested"
    WITHDRAWN = "withdrawn"


class VaultEvent(BaseModel):
    """A committed state change on one vault."""

    type: VaultEventType
    vault_key: str
    data: dict[str, Any] = {}
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
