"""Vault repository: durable storage of committed vault states."""

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert

from app.models import VaultState
from app.storage.database import VaultTable, get_database


def _row_values(state: VaultState) -> dict:
    return {
        "vault_key": state.vault_key,
        "admin": state.admin,
        "current_bin_lower": state.current_bins[0],
        "current_bin_upper": state.current_bins[1],
        "pending_bin_lower": state.pending_rebalance_bins[0],
        "pending_bin_upper": state.pending_rebalance_bins[1],
        "last_rebalance_time": state.last_rebalance_time,
        "last_fee_harvest_time": state.last_fee_harvest_time,
        "total_fees_earned": state.total_fees_earned,
        "max_fee_amount": state.max_fee_amount,
        "fee_token_account": state.fee_token_account,
        "rebalance_threshold": state.rebalance_threshold,
        "min_rebalance_delay": state.min_rebalance_delay,
        "last_price": state.last_price,
        "price_update_time": state.price_update_time,
        "bump": state.bump,
    }


def _row_to_state(row: VaultTable) -> VaultState:
    return VaultState(
        vault_key=row.vault_key,
        admin=row.admin,
        current_bins=(row.current_bin_lower, row.current_bin_upper),
        pending_rebalance_bins=(row.pending_bin_lower, row.pending_bin_upper),
        last_rebalance_time=row.last_rebalance_time,
        last_fee_harvest_time=row.last_fee_harvest_time,
        total_fees_earned=int(row.total_fees_earned),
        max_fee_amount=int(row.max_fee_amount),
        fee_token_account=row.fee_token_account,
        rebalance_threshold=row.rebalance_threshold,
        min_rebalance_delay=row.min_rebalance_delay,
        last_price=row.last_price,
        price_update_time=row.price_update_time,
        bump=row.bump,
    )


class VaultRepository:
    """Repository for vault records."""

    async def save(self, state: VaultState) -> None:
        """Insert or update a vault record."""
        async with get_database().session() as session:
            values = _row_values(state)
            stmt = insert(VaultTable).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["vault_key"],
                set_={
                    column: stmt.excluded[column]
                    for column in values
                    if column != "vault_key"
                },
            )
            await session.execute(stmt)

    async def get(self, vault_key: str) -> VaultState | None:
        """Get a vault by key."""
        async with get_database().session() as session:
            stmt = select(VaultTable).where(VaultTable.vault_key == vault_key)
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            return _row_to_state(row) if row else None

    async def get_all(self) -> list[VaultState]:
        """Get all vaults ordered by key."""
        async with get_database().session() as session:
            stmt = select(VaultTable).order_by(VaultTable.vault_key)
            result = await session.execute(stmt)
            return [_row_to_state(row) for row in result.scalars().all()]

    async def delete(self, vault_key: str) -> None:
        async with get_database().session() as session:
            await session.execute(delete(VaultTable).where(VaultTable.vault_key == vault_key))
