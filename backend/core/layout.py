"""Fixed-size binary account layout for VaultState.

Byte-compatible with the on-chain ``Vault`` account so packed records can be
compared against chain snapshots:

    discriminator            8   sha256("account:Vault")[:8]
    admin                   32   UTF-8, zero padded
    current_bins             8   2 x i32
    pending_rebalance_bins   8   2 x i32
    last_rebalance_time      8   i64
    last_fee_harvest_time    8   i64
    total_fees_earned        8   u64
    max_fee_amount           8   u64
    bump                     1   u8
    fee_token_account       32   UTF-8, zero padded
    rebalance_threshold      1   u8
    min_rebalance_delay      8   i64
    last_price               8   f64
    price_update_time        8   i64

All integers are little-endian. The vault key is not part of the account
(it is the account address) and must be supplied when unpacking.
"""

from __future__ import annotations

import hashlib
import struct

from core.constants import IDENTITY_BYTES
from core.models.vault import VaultState

ACCOUNT_DISCRIMINATOR = hashlib.sha256(b"account:Vault").digest()[:8]

_BODY = struct.Struct("<32s2i2iqqQQB32sBqdq")

VAULT_BODY_SIZE = _BODY.size  # 138
VAULT_ACCOUNT_SIZE = len(ACCOUNT_DISCRIMINATOR) + VAULT_BODY_SIZE  # 146


def _encode_identity(value: str) -> bytes:
    raw = value.encode("utf-8")
    if len(raw) > IDENTITY_BYTES:
        raise ValueError(
            f"Identity {value!r} is {len(raw)} bytes, max {IDENTITY_BYTES}"
        )
    return raw.ljust(IDENTITY_BYTES, b"\x00")


def _decode_identity(raw: bytes) -> str:
    return raw.rstrip(b"\x00").decode("utf-8")


def pack_vault(state: VaultState) -> bytes:
    """Encode ``state`` into its 146-byte account representation.

    Raises:
        ValueError: identity too long or a field outside its integer range.
    """
    try:
        body = _BODY.pack(
            _encode_identity(state.admin),
            *state.current_bins,
            *state.pending_rebalance_bins,
            state.last_rebalance_time,
            state.last_fee_harvest_time,
            state.total_fees_earned,
            state.max_fee_amount,
            state.bump,
            _encode_identity(state.fee_token_account),
            state.rebalance_threshold,
            state.min_rebalance_delay,
            state.last_price,
            state.price_update_time,
        )
    except struct.error as e:
        raise ValueError(f"Vault {state.vault_key} does not fit account layout: {e}") from e
    return ACCOUNT_DISCRIMINATOR + body


def unpack_vault(data: bytes, vault_key: str) -> VaultState:
    """Decode an account produced by ``pack_vault``."""
    if len(data) != VAULT_ACCOUNT_SIZE:
        raise ValueError(
            f"Vault account must be {VAULT_ACCOUNT_SIZE} bytes, got {len(data)}"
        )
    if data[:8] != ACCOUNT_DISCRIMINATOR:
        raise ValueError("Account discriminator mismatch")

    (
        admin,
        cur_lo,
        cur_hi,
        pend_lo,
        pend_hi,
        last_rebalance_time,
        last_fee_harvest_time,
        total_fees_earned,
        max_fee_amount,
        bump,
        fee_token_account,
        rebalance_threshold,
        min_rebalance_delay,
        last_price,
        price_update_time,
    ) = _BODY.unpack(data[8:])

    return VaultState(
        vault_key=vault_key,
        admin=_decode_identity(admin),
        current_bins=(cur_lo, cur_hi),
        pending_rebalance_bins=(pend_lo, pend_hi),
        last_rebalance_time=last_rebalance_time,
        last_fee_harvest_time=last_fee_harvest_time,
        total_fees_earned=total_fees_earned,
        max_fee_amount=max_fee_amount,
        bump=bump,
        fee_token_account=_decode_identity(fee_token_account),
        rebalance_threshold=rebalance_threshold,
        min_rebalance_delay=min_rebalance_delay,
        last_price=last_price,
        price_update_time=price_update_time,
    )
