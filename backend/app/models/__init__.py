"""Data models."""

from core.models import Bins, VaultConfig, VaultState, check_invariants
from app.models.event import VaultEvent, VaultEventType

__all__ = [
    "Bins",
    "VaultConfig",
    "VaultState",
    "check_invariants",
    "VaultEvent",
    "VaultEventType",
]
