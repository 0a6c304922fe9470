"""Price replay for DLMM vaults.

Drives the live services (app.services) over an in-memory pool, so a
replay exercises exactly the guards the API enforces.

Usage:
    python -m backtest --prices prices.csv
"""

from backtest.engine import SimulationConfig, SimulationEngine
from backtest.price_source import PriceSample, read_price_csv
from backtest.stats import SimulationResult

__all__ = [
    "SimulationConfig",
    "SimulationEngine",
    "PriceSample",
    "read_price_csv",
    "SimulationResult",
]
