"""Stake pipeline: estimate, build, simulate, confirm, submit, watch."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Union

from solders.keypair import Keypair

from delegation.amount import format_sol, make_request
from delegation.builder import build_operation
from delegation.config import StakeConfig
from delegation.errors import (
    BroadcastFailed,
    ConfirmationAmbiguous,
    ExecutionFailed,
    SimulationRejected,
    StakeError,
    StakeInProgress,
    UserCancelled,
    WalletUnsupported,
)
from delegation.estimator import CostEstimator
from delegation.gate import ConfirmationGate
from delegation.session import StakeSession
from delegation.simulator import Simulator
from delegation.state import (
    BuiltOperation,
    Confirmation,
    ConfirmationStatus,
    Outcome,
    SimulationKind,
    StakePreview,
    StakeReport,
)
from delegation.submitter import Submitter
from delegation.wallet import can_sign
from delegation.watcher import ConfirmationWatcher

logger = logging.getLogger(__name__)


class StakePipeline:
    """Runs one stake at a time for a session.

    Every run generates a single stake account keypair, and the instructions
    built for it are the ones simulated, previewed and broadcast. Runs never
    raise for expected failures; they return a ``StakeReport`` that tells the
    user whether the stake happened, did not happen, or may have happened.
    """

    def __init__(
        self,
        session: StakeSession,
        gate: ConfirmationGate,
        config: Optional[StakeConfig] = None,
        keypair_factory: Callable[[], Keypair] = Keypair,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session = session
        self.gate = gate
        self.config = config or session.config
        self.keypair_factory = keypair_factory
        client = session.client
        self.estimator = CostEstimator(client, self.config.fallback_fee)
        self.simulator = Simulator(client, self.config.fallback_fee, self.config.commitment)
        self.submitter = Submitter(client, self.config.broadcast_attempts, self.config.commitment)
        self.watcher = ConfirmationWatcher(
            client, self.config.poll_interval, self.config.confirm_timeout, sleep=sleep
        )

    async def stake(self, amount: Union[str, int]) -> StakeReport:
        """Stakes ``amount`` (decimal SOL text or lamports) with the configured validator."""
        if self.session.busy:
            raise StakeInProgress("A stake is already in progress.")
        self.session.busy = True
        try:
            return await self._run(amount)
        except StakeError as e:
            return self._report_error(e)
        finally:
            self.session.busy = False

    async def _run(self, amount: Union[str, int]) -> StakeReport:
        request = make_request(self.session.pubkey, amount, self.config.validator)
        if not can_sign(self.session.wallet):
            raise WalletUnsupported("Wallet cannot sign transactions.")
        logger.info(
            "Staking %s from %s to %s", format_sol(request.amount_lamports, 9), request.payer, request.validator
        )

        estimate = await self.estimator.estimate(request)
        built = build_operation(request, self.keypair_factory())
        logger.info("Prepared stake account %s", built.stake_pubkey)

        simulation = await self.simulator.simulate(built)
        if simulation.failed:
            raise SimulationRejected(simulation.reason)
        estimate = estimate.with_fee(simulation.fee)

        preview = StakePreview(
            payer=request.payer,
            validator=request.validator,
            stake_account=built.stake_pubkey,
            amount=estimate.amount,
            fee=estimate.estimated_fee,
            rent_exempt_minimum=estimate.rent_exempt_minimum,
            fee_is_estimate=simulation.kind is not SimulationKind.OK,
        )
        if not await self.gate.confirm(preview):
            raise UserCancelled("Cancelled. Nothing was sent.")

        try:
            submission = await self.submitter.submit(built, self.session.wallet)
        except BroadcastFailed as e:
            if e.may_have_landed and e.signature is not None:
                confirmation = await self._after_broadcast(e.signature, self.watcher.lookup)
                if confirmation.status is not ConfirmationStatus.TIMED_OUT:
                    return self._report_confirmation(confirmation, built)
            raise

        confirmation = await self._after_broadcast(submission.signature, self.watcher.watch)
        return self._report_confirmation(confirmation, built)

    async def _after_broadcast(self, signature, check) -> Confirmation:
        # once sent, no error may turn a possible stake into a crash
        try:
            return await check(signature)
        except Exception:
            logger.exception("Status check for %s failed", signature)
            return Confirmation(status=ConfirmationStatus.TIMED_OUT, signature=signature)

    def _report_confirmation(self, confirmation: Confirmation, built: BuiltOperation) -> StakeReport:
        signature = confirmation.signature
        if confirmation.status.succeeded:
            return StakeReport(
                outcome=Outcome.SUCCESS,
                message=f"Staked & delegated! Tx: {signature}",
                signature=signature,
                stake_account=built.stake_pubkey,
            )
        if confirmation.status is ConfirmationStatus.FAILED:
            raise ExecutionFailed(
                f"Transaction {signature} failed on-chain: {confirmation.error}. Nothing was staked.",
                signature=signature,
                error=confirmation.error,
            )
        raise ConfirmationAmbiguous(
            f"No confirmation for {signature} yet. The stake may still succeed: "
            "check this signature before trying again.",
            signature=signature,
        )

    def _report_error(self, e: StakeError) -> StakeReport:
        signature = getattr(e, "signature", None)
        message = str(e)
        if isinstance(e, BroadcastFailed) and e.may_have_landed and signature is not None:
            message = f"{message} The transaction may have landed: check {signature} before trying again."
        if isinstance(e, UserCancelled):
            logger.info(message)
        else:
            logger.error("Stake failed (%s): %s", e.outcome.value, message)
        return StakeReport(
            outcome=e.outcome,
            message=message,
            signature=signature,
            cancelled=isinstance(e, UserCancelled),
        )
