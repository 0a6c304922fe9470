"""Vault bootstrap configuration loaded from vaults.yaml.

Supports:
- Declaring vaults to create at startup (skipped if already present)
- Admin / fee account identities read from environment variables
- No YAML file = no vaults are bootstrapped
"""

import logging
import os
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, model_validator

from core.models import VaultConfig

logger = logging.getLogger(__name__)


class VaultEntry(BaseModel):
    """A single vault definition in vaults.yaml."""

    key: str = ""  # defaults to the admin identity
    admin: str = ""
    admin_env: str = ""
    fee_token_account: str = ""
    fee_token_account_env: str = ""
    rebalance_threshold: int = 5
    max_fee_amount: int = 10_000
    min_rebalance_delay: int = 3600
    enabled: bool = True

    @property
    def admin_identity(self) -> str:
        if self.admin_env:
            return os.environ.get(self.admin_env, "")
        return self.admin

    @property
    def fee_account(self) -> str:
        if self.fee_token_account_env:
            return os.environ.get(self.fee_token_account_env, "")
        return self.fee_token_account

    @property
    def vault_key(self) -> str:
        return self.key or self.admin_identity

    def to_vault_config(self) -> VaultConfig:
        return VaultConfig(
            fee_token_account=self.fee_account,
            rebalance_threshold=self.rebalance_threshold,
            max_fee_amount=self.max_fee_amount,
            min_rebalance_delay=self.min_rebalance_delay,
        )


class VaultsFile(BaseModel):
    """Top-level vaults.yaml configuration."""

    vaults: list[VaultEntry] = []

    @model_validator(mode="after")
    def _validate(self):
        keys = [v.key for v in self.vaults if v.key]
        duplicates = sorted({k for k in keys if keys.count(k) > 1})
        if duplicates:
            raise ValueError(f"duplicate vault keys: {duplicates}")
        for entry in self.vaults:
            if not entry.admin and not entry.admin_env:
                raise ValueError(
                    f"vault '{entry.key or '?'}' needs either 'admin' or 'admin_env'"
                )
        return self

    def get_enabled_vaults(self) -> list[VaultEntry]:
        """Return enabled vaults whose admin identity resolves."""
        result = []
        for entry in self.vaults:
            if not entry.enabled:
                continue
            if not entry.admin_identity:
                logger.warning(
                    "Vault '%s': admin env var %s not set, skipping",
                    entry.key,
                    entry.admin_env,
                )
                continue
            result.append(entry)
        return result


_DEFAULT_PATH = Path(__file__).parent.parent / "vaults.yaml"


def load_vaults_config(path: Path | None = None) -> VaultsFile:
    """Load vault definitions from YAML file.

    Falls back to an empty configuration if the file doesn't exist.
    """
    config_path = path or _DEFAULT_PATH

    # Load .env into os.environ so admin_env/fee_token_account_env resolve
    env_path = config_path.parent / ".env"
    load_dotenv(env_path, override=False)

    if not config_path.exists():
        logger.info("No vaults.yaml found at %s, no vaults bootstrapped", config_path)
        return VaultsFile()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    config = VaultsFile(**raw)
    logger.info(
        "Loaded vault config: %d vaults (%d enabled)",
        len(config.vaults),
        len(config.get_enabled_vaults()),
    )
    return config
