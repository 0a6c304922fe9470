"""Business services."""

from app.services.vault_registry import StagedVault, VaultRegistry, system_clock
from app.services.price_monitor import PriceMonitor, PriceUpdate
from app.services.rebalance_executor import RebalanceExecutor, RebalanceResult
from app.services.fee_harvester import FeeHarvester, HarvestResult
from app.services.withdrawal_manager import WithdrawalManager, WithdrawalResult
from app.services.vault_manager import VaultManager

__all__ = [
    "StagedVault",
    "VaultRegistry",
    "system_clock",
    "PriceMonitor",
    "PriceUpdate",
    "RebalanceExecutor",
    "RebalanceResult",
    "FeeHarvester",
    "HarvestResult",
    "WithdrawalManager",
    "WithdrawalResult",
    "VaultManager",
]
