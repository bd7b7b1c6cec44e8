"""Wallet session state for stake runs."""

import logging
from typing import Optional

from solana.rpc.async_api import AsyncClient
from solders.pubkey import Pubkey

from delegation.config import StakeConfig
from delegation.errors import InputInvalid, StakeInProgress
from delegation.estimator import max_stakeable
from delegation.wallet import WalletProvider

logger = logging.getLogger(__name__)


class StakeSession:
    """Connected wallet and RPC client shared by the stake runs of one user.

    ``busy`` is set while a run is active; callers are expected to keep the
    stake action disabled while it is set.
    """

    def __init__(self, client: AsyncClient, config: Optional[StakeConfig] = None):
        self.client = client
        self.config = config or StakeConfig()
        self.wallet: Optional[WalletProvider] = None
        self.pubkey: Optional[Pubkey] = None
        self.balance: Optional[int] = None
        self.busy = False

    @property
    def connected(self) -> bool:
        return self.wallet is not None and self.pubkey is not None

    async def connect(self, wallet: WalletProvider) -> Pubkey:
        pubkey = await wallet.connect()
        if pubkey is None:
            raise InputInvalid("No public key from wallet.")
        self.wallet = wallet
        self.pubkey = pubkey
        logger.info("Wallet connected: %s", pubkey)
        return pubkey

    async def disconnect(self) -> None:
        wallet = self.wallet
        self.wallet = None
        self.pubkey = None
        self.balance = None
        if wallet is not None:
            await wallet.disconnect()
            logger.info("Wallet disconnected")

    def account_changed(self, pubkey: Optional[Pubkey]) -> None:
        """Follows the wallet switching accounts. ``None`` means it no longer exposes one."""
        if self.busy:
            raise StakeInProgress("Cannot switch accounts while a stake is in progress.")
        self.pubkey = pubkey
        self.balance = None
        logger.info("Wallet account changed: %s", pubkey)

    async def refresh_balance(self) -> int:
        if self.pubkey is None:
            raise InputInvalid("Connect wallet first.")
        resp = await self.client.get_balance(self.pubkey, commitment=self.config.commitment)
        self.balance = resp.value
        return self.balance

    async def max_stakeable(self) -> int:
        """Balance minus the fee reserve, for a "stake everything" action."""
        return max_stakeable(await self.refresh_balance())
