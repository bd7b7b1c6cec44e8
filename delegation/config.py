"""Stake pipeline configuration."""

from typing import NamedTuple

from solana.rpc.commitment import Commitment, Confirmed
from solders.pubkey import Pubkey

from stake.constants import LAMPORTS_PER_SOL

DEFAULT_ENDPOINT: str = "https://api.mainnet-beta.solana.com"
"""Public RPC endpoint used when no proxy is configured."""

DEFAULT_VALIDATOR = Pubkey.from_string("HXnHzBUQVZAmovjMb7vbm8G53XS3W4KVrzpF6jiozrJ3")
"""Vote account that stake is delegated to."""

FALLBACK_FEE_LAMPORTS: int = 5_000
"""Fee assumed until a dry run refines it."""

FEE_RESERVE_LAMPORTS: int = LAMPORTS_PER_SOL // 100
"""Balance kept aside for fees when staking the maximum."""

POLL_INTERVAL_SECONDS: float = 1.2
"""Delay between signature status polls."""

CONFIRM_TIMEOUT_SECONDS: float = 75.0
"""How long to poll before falling back to a historical lookup."""

BROADCAST_ATTEMPTS: int = 3
"""Maximum number of sends of a signed transaction."""


class StakeConfig(NamedTuple):
    """Settings for a stake session."""
    rpc_endpoint: str = DEFAULT_ENDPOINT
    validator: Pubkey = DEFAULT_VALIDATOR
    network_label: str = "mainnet-beta"
    commitment: Commitment = Confirmed
    fallback_fee: int = FALLBACK_FEE_LAMPORTS
    poll_interval: float = POLL_INTERVAL_SECONDS
    confirm_timeout: float = CONFIRM_TIMEOUT_SECONDS
    broadcast_attempts: int = BROADCAST_ATTEMPTS
