"""Rent and fee checks that run before anything is simulated or signed."""

import logging

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed

from stake.constants import STAKE_LEN
from delegation.amount import format_sol
from delegation.config import FALLBACK_FEE_LAMPORTS, FEE_RESERVE_LAMPORTS
from delegation.errors import RPC_ERRORS, EndpointUnavailable, InsufficientFunds, describe_error
from delegation.state import CostEstimate, StakeRequest

logger = logging.getLogger(__name__)


def max_stakeable(balance: int, reserve: int = FEE_RESERVE_LAMPORTS) -> int:
    """Largest amount that leaves ``reserve`` lamports for fees."""
    return max(0, balance - reserve)


class CostEstimator:
    def __init__(self, client: AsyncClient, fallback_fee: int = FALLBACK_FEE_LAMPORTS):
        self.client = client
        self.fallback_fee = fallback_fee

    async def rent_exempt_minimum(self) -> int:
        resp = await self.client.get_minimum_balance_for_rent_exemption(STAKE_LEN)
        return resp.value

    async def estimate(self, request: StakeRequest) -> CostEstimate:
        """Checks the request against the rent-exempt minimum and the payer's balance.

        Raises ``InsufficientFunds`` if the amount cannot fund a stake account
        or the payer cannot cover amount plus fee, and ``EndpointUnavailable``
        if either lookup fails.
        """
        try:
            rent = await self.rent_exempt_minimum()
            resp = await self.client.get_balance(request.payer, commitment=Confirmed)
        except RPC_ERRORS as e:
            raise EndpointUnavailable(f"Could not check balance and rent: {describe_error(e)}")
        estimate = CostEstimate(
            rent_exempt_minimum=rent,
            estimated_fee=self.fallback_fee,
            amount=request.amount_lamports,
            balance=resp.value,
        )
        logger.debug("Estimate for %s: %s", request.payer, estimate)
        if estimate.amount < estimate.rent_exempt_minimum:
            raise InsufficientFunds(
                f"Too low. Need at least {format_sol(estimate.rent_exempt_minimum)} for rent."
            )
        if estimate.total_required > estimate.balance:
            raise InsufficientFunds(
                f"Insufficient balance: {format_sol(estimate.total_required, 6)} required "
                f"(amount plus fee), {format_sol(estimate.balance, 6)} available."
            )
        return estimate
