"""Wallet providers.

The pipeline needs a wallet to connect, report its address and either sign
and submit a transaction in one call or return a signed transaction for the
pipeline to broadcast. Any object with those methods works; the keypair
wallets here back the command line and the tests.
"""

import json
from typing import Optional, Protocol

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction


class WalletProvider(Protocol):
    pubkey: Optional[Pubkey]

    async def connect(self) -> Pubkey:
        ...

    async def disconnect(self) -> None:
        ...


class WalletError(Exception):
    """The wallet refused or failed to sign."""


def keypair_from_file(keyfile_name: str) -> Keypair:
    with open(keyfile_name, 'r') as keyfile:
        data = keyfile.read()
    int_list = json.loads(data)
    return Keypair.from_bytes(bytes(int_list))


class KeypairWallet:
    """Sign-only wallet backed by a local keypair."""

    def __init__(self, keypair: Keypair):
        self._keypair = keypair
        self.pubkey: Optional[Pubkey] = None

    async def connect(self) -> Pubkey:
        self.pubkey = self._keypair.pubkey()
        return self.pubkey

    async def disconnect(self) -> None:
        self.pubkey = None

    async def sign_transaction(self, txn: Transaction) -> Transaction:
        if self.pubkey is None:
            raise WalletError("Wallet is not connected")
        txn.partial_sign([self._keypair], txn.message.recent_blockhash)
        return txn


class SendingKeypairWallet(KeypairWallet):
    """Keypair wallet that submits through its own RPC client, like browser wallets do."""

    def __init__(self, keypair: Keypair, client: AsyncClient):
        super().__init__(keypair)
        self._client = client

    async def sign_and_send_transaction(self, txn: Transaction) -> Signature:
        signed = await self.sign_transaction(txn)
        resp = await self._client.send_raw_transaction(
            bytes(signed), opts=TxOpts(skip_preflight=False, preflight_commitment=Confirmed)
        )
        return resp.value


def can_sign(wallet) -> bool:
    """True if ``wallet`` offers either signing mode."""
    return any(
        callable(getattr(wallet, name, None))
        for name in ("sign_and_send_transaction", "sign_transaction")
    )
