"""Signing and broadcasting of an accepted stake."""

import logging

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.core import RPCException
from solana.rpc.types import TxOpts
from solders.transaction import Transaction

from delegation.builder import compile_transaction
from delegation.config import BROADCAST_ATTEMPTS
from delegation.errors import (
    RPC_ERRORS,
    TRANSPORT_ERRORS,
    BroadcastFailed,
    EndpointUnavailable,
    WalletUnsupported,
    describe_error,
)
from delegation.state import BuiltOperation, SubmissionResult
from delegation.wallet import WalletError, WalletProvider, can_sign

logger = logging.getLogger(__name__)

ALREADY_PROCESSED = "already been processed"


class Submitter:
    """Binds the built operation to a fresh blockhash, gets it signed and sends it.

    Wallets offering ``sign_and_send_transaction`` submit the transaction
    themselves. Otherwise the wallet only signs and the transaction is sent
    from here, retrying transport failures. Resending the same signed bytes
    cannot create a second stake account.
    """

    def __init__(
        self,
        client: AsyncClient,
        max_attempts: int = BROADCAST_ATTEMPTS,
        commitment: Commitment = Confirmed,
    ):
        self.client = client
        self.max_attempts = max_attempts
        self.commitment = commitment
        self.opts = TxOpts(skip_preflight=False, preflight_commitment=commitment)

    async def submit(self, built: BuiltOperation, wallet: WalletProvider) -> SubmissionResult:
        sign_and_send = getattr(wallet, "sign_and_send_transaction", None)
        sign = getattr(wallet, "sign_transaction", None)
        if not can_sign(wallet):
            raise WalletUnsupported("Wallet cannot sign transactions.")

        try:
            latest = (await self.client.get_latest_blockhash(commitment=self.commitment)).value
        except RPC_ERRORS as e:
            raise EndpointUnavailable(f"Could not fetch a recent blockhash: {describe_error(e)}")
        txn = compile_transaction(built, latest.blockhash)
        logger.info("Submitting stake account %s with blockhash %s", built.stake_pubkey, latest.blockhash)

        if callable(sign_and_send):
            try:
                signature = await sign_and_send(txn)
            except (WalletError, RPCException) as e:
                raise BroadcastFailed(f"Transaction was not sent: {e}")
            except TRANSPORT_ERRORS as e:
                raise BroadcastFailed(
                    f"Wallet lost contact while sending: {describe_error(e)}. Check your wallet activity before retrying.",
                    may_have_landed=True,
                )
        else:
            try:
                signed = await sign(txn)
            except WalletError as e:
                raise BroadcastFailed(f"Wallet did not sign: {e}")
            signature = await self.broadcast(signed, built)

        logger.info("Sent %s", signature)
        return SubmissionResult(
            signature=signature,
            recent_blockhash=latest.blockhash,
            last_valid_block_height=latest.last_valid_block_height,
        )

    async def broadcast(self, signed: Transaction, built: BuiltOperation):
        if not signed.is_signed():
            raise BroadcastFailed("Wallet returned a transaction that is not fully signed.")
        if built.stake_pubkey not in signed.message.account_keys:
            raise BroadcastFailed("Wallet returned a transaction for a different stake account.")

        signature = signed.signatures[0]
        raw = bytes(signed)
        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                resp = await self.client.send_raw_transaction(raw, opts=self.opts)
                return resp.value
            except RPCException as e:
                if ALREADY_PROCESSED in str(e).lower():
                    logger.info("Attempt %d: %s already processed", attempt, signature)
                    return signature
                # a rejection after a lost send can be the earlier send having landed
                raise BroadcastFailed(
                    f"Transaction rejected: {e}", signature=signature, may_have_landed=attempt > 1
                )
            except TRANSPORT_ERRORS as e:
                last_error = e
                logger.warning("Broadcast attempt %d/%d failed: %s", attempt, self.max_attempts, describe_error(e))
        raise BroadcastFailed(
            f"Broadcast failed after {self.max_attempts} attempts: {describe_error(last_error)}",
            signature=signature,
            may_have_landed=True,
        )
