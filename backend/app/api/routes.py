"""REST API routes."""

import base64
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel, Field

from core.errors import AccountNotEncodable
from core.layout import pack_vault
from core.models import VaultConfig, VaultState

from app.services import VaultManager

logger = logging.getLogger(__name__)

router = APIRouter()

VERSION = "0.1.0"


# Request models
class InitializeRequest(BaseModel):
    """Vault initialization request. The caller becomes the admin."""

    fee_token_account: str
    rebalance_threshold: int
    max_fee_amount: int
    min_rebalance_delay: int
    vault_key: Optional[str] = None  # defaults to the caller


class DepositRequest(BaseModel):
    amount: int
    bins: tuple[int, int]


class PriceRequest(BaseModel):
    price: float
    current_time: Optional[int] = None


class RebalanceRequest(BaseModel):
    token_amount: int
    current_time: Optional[int] = None


class HarvestRequest(BaseModel):
    current_time: Optional[int] = None


class WithdrawRequest(BaseModel):
    share: int = Field(description="Percentage of the position to remove (1-100)")


# Response models
class VaultResponse(BaseModel):
    """Vault state response model."""

    vault_key: str
    admin: str
    current_bins: tuple[int, int]
    pending_rebalance_bins: tuple[int, int]
    last_rebalance_time: int
    last_fee_harvest_time: int
    total_fees_earned: int
    max_fee_amount: int
    fee_token_account: str
    rebalance_threshold: int
    min_rebalance_delay: int
    last_price: float
    price_update_time: int

    @classmethod
    def from_state(cls, state: VaultState) -> "VaultResponse":
        return cls(**state.model_dump(exclude={"bump"}))


class AccountResponse(BaseModel):
    vault_key: str
    size: int
    data: str  # base64 encoded packed account


class DepositResponse(BaseModel):
    vault: VaultResponse
    liquidity: int
    position_liquidity: int


class PriceResponse(BaseModel):
    vault: VaultResponse
    drift_pct: Optional[float] = None
    staged_bins: Optional[tuple[int, int]] = None


class RebalanceResponse(BaseModel):
    vault: VaultResponse
    old_bins: tuple[int, int]
    new_bins: tuple[int, int]
    withdrawn: int
    deposited: int


class HarvestResponse(BaseModel):
    vault: VaultResponse
    fee_amount: int


class WithdrawResponse(BaseModel):
    vault_key: str
    share: int
    position_liquidity: int
    amount: int
    remaining_liquidity: int


class SystemStatus(BaseModel):
    """System status response."""

    status: str
    version: str
    vaults: int
    pending_rebalances: int


# Dependencies
def get_vault_manager(request: Request) -> VaultManager:
    return request.app.state.vault_manager


def get_caller(x_vault_caller: str = Header(..., alias="X-Vault-Caller")) -> str:
    return x_vault_caller


@router.get("/status", response_model=SystemStatus)
async def get_status(manager: VaultManager = Depends(get_vault_manager)):
    """Get system status."""
    vaults = manager.list_vaults()
    return SystemStatus(
        status="running",
        version=VERSION,
        vaults=len(vaults),
        pending_rebalances=sum(1 for v in vaults if v.has_pending_rebalance),
    )


@router.get("/vaults", response_model=list[VaultResponse])
async def list_vaults(manager: VaultManager = Depends(get_vault_manager)):
    return [VaultResponse.from_state(v) for v in manager.list_vaults()]


@router.post("/vaults", response_model=VaultResponse, status_code=201)
async def initialize_vault(
    body: InitializeRequest,
    caller: str = Depends(get_caller),
    manager: VaultManager = Depends(get_vault_manager),
):
    """Create a vault administered by the caller."""
    config = VaultConfig(
        fee_token_account=body.fee_token_account,
        rebalance_threshold=body.rebalance_threshold,
        max_fee_amount=body.max_fee_amount,
        min_rebalance_delay=body.min_rebalance_delay,
    )
    state = await manager.initialize(caller, config, vault_key=body.vault_key)
    return VaultResponse.from_state(state)


@router.get("/vaults/{vault_key}", response_model=VaultResponse)
async def get_vault(vault_key: str, manager: VaultManager = Depends(get_vault_manager)):
    return VaultResponse.from_state(manager.get_vault(vault_key))


@router.get("/vaults/{vault_key}/account", response_model=AccountResponse)
async def get_vault_account(vault_key: str, manager: VaultManager = Depends(get_vault_manager)):
    """Get the vault encoded in the fixed-size account layout.

    Identities wider than 32 bytes (e.g. base58 pubkeys kept as text) have no
    layout encoding and are rejected with 422.
    """
    try:
        data = pack_vault(manager.get_vault(vault_key))
    except ValueError as e:
        raise AccountNotEncodable(str(e)) from e
    return AccountResponse(
        vault_key=vault_key,
        size=len(data),
        data=base64.b64encode(data).decode("ascii"),
    )


@router.post("/vaults/{vault_key}/deposit", response_model=DepositResponse)
async def deposit(
    vault_key: str,
    body: DepositRequest,
    caller: str = Depends(get_caller),
    manager: VaultManager = Depends(get_vault_manager),
):
    state, result = await manager.deposit(vault_key, caller, body.amount, body.bins)
    return DepositResponse(
        vault=VaultResponse.from_state(state),
        liquidity=result.liquidity,
        position_liquidity=result.position_liquidity,
    )


@router.post("/vaults/{vault_key}/price", response_model=PriceResponse)
async def record_price(
    vault_key: str,
    body: PriceRequest,
    caller: str = Depends(get_caller),
    manager: VaultManager = Depends(get_vault_manager),
):
    """Record a price sample; a drift above the threshold stages new bins."""
    update = await manager.record_price(vault_key, caller, body.price, body.current_time)
    return PriceResponse(
        vault=VaultResponse.from_state(update.state),
        drift_pct=update.drift_pct,
        staged_bins=update.staged_bins,
    )


@router.post("/vaults/{vault_key}/rebalance", response_model=RebalanceResponse)
async def rebalance(
    vault_key: str,
    body: RebalanceRequest,
    caller: str = Depends(get_caller),
    manager: VaultManager = Depends(get_vault_manager),
):
    result = await manager.rebalance(vault_key, caller, body.token_amount, body.current_time)
    return RebalanceResponse(
        vault=VaultResponse.from_state(result.state),
        old_bins=result.old_bins,
        new_bins=result.new_bins,
        withdrawn=result.withdrawn.liquidity if result.withdrawn else 0,
        deposited=result.deposited.liquidity,
    )


@router.post("/vaults/{vault_key}/harvest", response_model=HarvestResponse)
async def harvest_fees(
    vault_key: str,
    body: Optional[HarvestRequest] = None,
    caller: str = Depends(get_caller),
    manager: VaultManager = Depends(get_vault_manager),
):
    current_time = body.current_time if body else None
    result = await manager.harvest_fees(vault_key, caller, current_time)
    return HarvestResponse(vault=VaultResponse.from_state(result.state), fee_amount=result.fee_amount)


@router.post("/vaults/{vault_key}/withdraw", response_model=WithdrawResponse)
async def withdraw(
    vault_key: str,
    body: WithdrawRequest,
    caller: str = Depends(get_caller),
    manager: VaultManager = Depends(get_vault_manager),
):
    result = await manager.withdraw(vault_key, caller, body.share)
    return WithdrawResponse(
        vault_key=result.vault_key,
        share=result.share,
        position_liquidity=result.position_liquidity,
        amount=result.amount,
        remaining_liquidity=result.removed.position_liquidity,
    )
