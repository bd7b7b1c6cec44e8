"""Confirmation polling for a submitted stake transaction.

Finality is decided by polling the signature's status, never by comparing
block heights: a transaction can land right as its blockhash expires, and a
height check would report that as expired.
"""

import asyncio
import logging
import math
from typing import Awaitable, Callable, Optional, Tuple

from solana.rpc.async_api import AsyncClient
from solders.signature import Signature
from solders.transaction_status import TransactionConfirmationStatus

from delegation.config import CONFIRM_TIMEOUT_SECONDS, POLL_INTERVAL_SECONDS
from delegation.errors import RPC_ERRORS, describe_error, is_expiry_error
from delegation.state import Confirmation, ConfirmationStatus

logger = logging.getLogger(__name__)


def classify(status) -> Tuple[ConfirmationStatus, Optional[object]]:
    """Maps one entry of ``getSignatureStatuses`` to a confirmation status and error."""
    if status is None:
        return ConfirmationStatus.PENDING, None
    if status.err is not None:
        return ConfirmationStatus.FAILED, status.err
    if status.confirmation_status == TransactionConfirmationStatus.Finalized:
        return ConfirmationStatus.FINALIZED, None
    if status.confirmation_status == TransactionConfirmationStatus.Confirmed:
        return ConfirmationStatus.CONFIRMED, None
    return ConfirmationStatus.PENDING, None


class ConfirmationWatcher:
    """Polls a signature until it is confirmed, finalized, failed or out of time.

    Polling only reads. When polls run out, or the endpoint answers with an
    expiry-shaped error, one lookup with transaction history search decides
    between a late success or failure and ``TIMED_OUT``.
    """

    def __init__(
        self,
        client: AsyncClient,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        timeout: float = CONFIRM_TIMEOUT_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.poll_interval = poll_interval
        self.max_polls = max(1, math.ceil(round(timeout / poll_interval, 6)))
        self.sleep = sleep

    async def poll(self, signature: Signature, search_transaction_history: bool = False):
        resp = await self.client.get_signature_statuses(
            [signature], search_transaction_history=search_transaction_history
        )
        return classify(resp.value[0])

    async def watch(self, signature: Signature) -> Confirmation:
        polls = 0
        while polls < self.max_polls:
            polls += 1
            try:
                status, error = await self.poll(signature)
            except RPC_ERRORS as e:
                if is_expiry_error(e):
                    logger.warning("Poll %d for %s reported expiry, checking history: %s",
                                   polls, signature, describe_error(e))
                    break
                logger.warning("Poll %d for %s failed: %s", polls, signature, describe_error(e))
            else:
                if status.terminal:
                    if status is ConfirmationStatus.FAILED:
                        logger.error("Transaction %s failed: %s", signature, error)
                    else:
                        logger.info("Transaction %s %s after %d polls", signature, status.value, polls)
                    return Confirmation(status=status, signature=signature, polls=polls, error=error)
            if polls < self.max_polls:
                await self.sleep(self.poll_interval)

        confirmation = await self.lookup(signature)
        return confirmation._replace(polls=polls)

    async def lookup(self, signature: Signature) -> Confirmation:
        """Single status lookup that also searches transaction history.

        Returns ``TIMED_OUT`` when nothing terminal is found or the lookup
        itself fails.
        """
        try:
            status, error = await self.poll(signature, search_transaction_history=True)
        except RPC_ERRORS as e:
            logger.warning("History lookup for %s failed: %s", signature, describe_error(e))
            return Confirmation(status=ConfirmationStatus.TIMED_OUT, signature=signature, recovered=True)
        if not status.terminal:
            logger.warning("No final status for %s", signature)
            return Confirmation(status=ConfirmationStatus.TIMED_OUT, signature=signature, recovered=True)
        logger.info("History lookup for %s found %s", signature, status.value)
        return Confirmation(status=status, signature=signature, error=error, recovered=True)
