"""The point where a user accepts or declines a prepared stake."""

import asyncio
from typing import Callable, Optional, Protocol

from delegation.amount import format_sol
from delegation.state import StakePreview


class ConfirmationGate(Protocol):
    """Waits, without a timeout, for the user's decision on ``preview``."""

    async def confirm(self, preview: StakePreview) -> bool:
        ...


def describe(preview: StakePreview) -> str:
    fee_label = "Estimated fee" if preview.fee_is_estimate else "Network fee"
    return "\n".join([
        f"From:          {preview.payer}",
        f"Validator:     {preview.validator}",
        f"Stake account: {preview.stake_account}",
        f"Amount:        {format_sol(preview.amount, 9)}",
        f"{fee_label + ':':<15}{format_sol(preview.fee, 9)}",
        f"Rent reserve:  {format_sol(preview.rent_exempt_minimum, 9)} (included in amount)",
    ])


class AutoApproveGate:
    async def confirm(self, preview: StakePreview) -> bool:
        return True


class ConsoleGate:
    """Prompts on the terminal. The blocking read runs in a worker thread."""

    def __init__(self, prompt: Callable[[str], str] = input, output: Callable[[str], None] = print):
        self.prompt = prompt
        self.output = output

    async def confirm(self, preview: StakePreview) -> bool:
        self.output(describe(preview))
        answer: Optional[str] = await asyncio.to_thread(self.prompt, "Stake and delegate? [y/N] ")
        return (answer or "").strip().lower() in ("y", "yes")
