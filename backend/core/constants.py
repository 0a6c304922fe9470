"""Vault constants shared by core and app."""

# Maximum age (seconds) of the last recorded price sample
STALENESS_WINDOW_SECONDS = 30

# Sentinel for "no rebalance candidate staged"
EMPTY_BINS: tuple[int, int] = (0, 0)

# Threshold bounds (percent)
MIN_REBALANCE_THRESHOLD = 1
MAX_REBALANCE_THRESHOLD = 100

# Withdrawal share bounds (percent)
MIN_SHARE_PERCENTAGE = 1
MAX_SHARE_PERCENTAGE = 100

# Integer ranges of the persisted account fields
I32_MIN = -(2**31)
I32_MAX = 2**31 - 1
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1
U64_MAX = 2**64 - 1
U8_MAX = 2**8 - 1

# Identities (admin, fee token account) occupy 32 bytes in the account layout
IDENTITY_BYTES = 32
