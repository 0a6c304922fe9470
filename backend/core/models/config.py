"""Vault configuration model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class VaultConfig(BaseModel):
    """Admin-chosen parameters supplied at initialization.

    Range checks are done by ``initialize_vault`` so that a bad value
    surfaces as ``InvalidThreshold``/``InvalidParameter`` rather than a
    pydantic ValidationError.
    """

    model_config = ConfigDict(frozen=True)

    fee_token_account: str
    rebalance_threshold: int  # percent, 1-100
    max_fee_amount: int
    min_rebalance_delay: int  # seconds, > 0
