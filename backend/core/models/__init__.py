"""Vault data models."""

from core.models.config import VaultConfig
from core.models.vault import Bins, VaultState, check_invariants

__all__ = [
    "Bins",
    "VaultConfig",
    "VaultState",
    "check_invariants",
]
