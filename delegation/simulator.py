"""Dry run of a built stake operation."""

import logging
from typing import Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed

from delegation.builder import compile_transaction
from delegation.config import FALLBACK_FEE_LAMPORTS
from delegation.errors import RPC_ERRORS, describe_error
from delegation.state import BuiltOperation, SimulationKind, SimulationOutcome

logger = logging.getLogger(__name__)


class Simulator:
    """Simulates without the payer's signature and refines the fee from the simulated message.

    A ledger error in the simulation is reported as ``FAILED``. An unreachable
    or failing endpoint only downgrades the outcome to ``SKIPPED`` with the
    fallback fee.
    """

    def __init__(
        self,
        client: AsyncClient,
        fallback_fee: int = FALLBACK_FEE_LAMPORTS,
        commitment: Commitment = Confirmed,
    ):
        self.client = client
        self.fallback_fee = fallback_fee
        self.commitment = commitment

    async def simulate(self, built: BuiltOperation) -> SimulationOutcome:
        try:
            blockhash = (await self.client.get_latest_blockhash(commitment=self.commitment)).value.blockhash
            txn = compile_transaction(built, blockhash)
            resp = await self.client.simulate_transaction(txn, sig_verify=False, commitment=self.commitment)
        except RPC_ERRORS as e:
            reason = describe_error(e)
            logger.warning("Simulation unavailable, continuing with fallback fee: %s", reason)
            return SimulationOutcome(kind=SimulationKind.SKIPPED, fee=self.fallback_fee, reason=reason)

        result = resp.value
        logs = tuple(result.logs or ())
        if result.err is not None:
            reason = f"Simulation failed: {result.err}"
            logger.error("%s; logs: %s", reason, list(logs))
            return SimulationOutcome(kind=SimulationKind.FAILED, fee=self.fallback_fee, reason=reason, logs=logs)

        fee = await self.fee_for(txn.message)
        return SimulationOutcome(
            kind=SimulationKind.OK,
            fee=fee if fee is not None else self.fallback_fee,
            logs=logs,
            units_consumed=result.units_consumed,
        )

    async def fee_for(self, message) -> Optional[int]:
        try:
            resp = await self.client.get_fee_for_message(message, commitment=self.commitment)
        except RPC_ERRORS as e:
            logger.warning("Fee lookup failed, keeping fallback fee: %s", describe_error(e))
            return None
        return resp.value
