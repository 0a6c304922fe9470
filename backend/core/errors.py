"""Vault error kinds.

Every guard failure is a ``VaultError`` subclass with a stable numeric code
and message. Codes 6000-6007 keep the declaration order of the on-chain
program so clients that already decode those codes keep working.
"""

from __future__ import annotations


class VaultError(Exception):
    """Base class for all vault guard and collaborator failures."""

    code: int = 0
    message: str = "Vault error"
    http_status: int = 400

    def __init__(self, detail: str | None = None):
        self.detail = detail
        super().__init__(f"{self.message}: {detail}" if detail else self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_response(self) -> dict:
        body = {"error": self.kind, "code": self.code, "message": self.message}
        if self.detail:
            body["detail"] = self.detail
        return body


class InvalidThreshold(VaultError):
    code = 6000
    message = "Threshold must be between 1-100"


class InvalidParameter(VaultError):
    code = 6001
    message = "Invalid parameter value"


class FeeOverflow(VaultError):
    code = 6002
    message = "Fee calculation overflow"
    http_status = 409


class MaxFeeExceeded(VaultError):
    code = 6003
    message = "Maximum fee amount exceeded"
    http_status = 409


class RebalanceTooFrequent(VaultError):
    code = 6004
    message = "Rebalance too frequent"
    http_status = 409


class InvalidBins(VaultError):
    code = 6005
    message = "Invalid bin range"


class StalePrice(VaultError):
    code = 6006
    message = "Price data is too stale"
    http_status = 409


class InvalidSharePercentage(VaultError):
    code = 6007
    message = "Invalid share percentage"


# Registry and collaborator failures (no on-chain equivalent)


class Unauthorized(VaultError):
    code = 6100
    message = "Caller is not the vault admin"
    http_status = 403


class VaultNotFound(VaultError):
    code = 6101
    message = "Vault not found"
    http_status = 404


class VaultAlreadyExists(VaultError):
    code = 6102
    message = "Vault already initialized"
    http_status = 409


class AccountNotEncodable(VaultError):
    """The vault holds an identity too wide for the fixed account layout."""

    code = 6103
    message = "Vault cannot be encoded in the account layout"
    http_status = 422


class PoolAdapterError(VaultError):
    """The liquidity pool rejected or failed an add/remove/claim call."""

    code = 6200
    message = "Liquidity pool call failed"
    http_status = 502


ERROR_KINDS: dict[str, type[VaultError]] = {
    cls.__name__: cls
    for cls in (
        InvalidThreshold,
        InvalidParameter,
        FeeOverflow,
        MaxFeeExceeded,
        RebalanceTooFrequent,
        InvalidBins,
        StalePrice,
        InvalidSharePercentage,
        Unauthorized,
        VaultNotFound,
        VaultAlreadyExists,
        AccountNotEncodable,
        PoolAdapterError,
    )
}
