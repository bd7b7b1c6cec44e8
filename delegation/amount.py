"""Conversion of user-entered SOL amounts."""

import re
from decimal import Decimal
from typing import Optional, Union

from solders.pubkey import Pubkey

from stake.constants import LAMPORTS_PER_SOL
from delegation.errors import InputInvalid
from delegation.state import StakeRequest

AMOUNT_PATTERN = re.compile(r"(\d*)\.?(\d*)")
LAMPORT_DECIMALS = 9
MAX_LAMPORTS = 2**64 - 1
"""Lamport amounts are u64 on the ledger."""


def parse_amount(text: str) -> int:
    """Converts a decimal SOL string to lamports, truncating sub-lamport digits.

    Either ``.`` or ``,`` is accepted as the decimal separator, but not both.
    Signs, exponents and amounts that do not fit in a u64 are rejected.
    """
    if text is None:
        raise InputInvalid("Enter a valid amount.")
    cleaned = text.strip().replace(' ', '')
    if ',' in cleaned:
        if '.' in cleaned or cleaned.count(',') > 1:
            raise InputInvalid(f"Enter a valid amount, got {text!r}.")
        cleaned = cleaned.replace(',', '.')
    match = AMOUNT_PATTERN.fullmatch(cleaned)
    if match is None or not any(match.groups()):
        raise InputInvalid(f"Enter a valid amount, got {text!r}.")
    whole, fraction = match.groups()
    whole = whole.lstrip('0')
    if len(whole) > len(str(MAX_LAMPORTS // LAMPORTS_PER_SOL)):
        raise InputInvalid(f"Amount {text!r} is too large.")
    lamports = int(whole or 0) * LAMPORTS_PER_SOL + int(fraction[:LAMPORT_DECIMALS].ljust(LAMPORT_DECIMALS, '0'))
    if lamports > MAX_LAMPORTS:
        raise InputInvalid(f"Amount {text!r} is too large.")
    if lamports <= 0:
        raise InputInvalid("Enter a valid amount.")
    return lamports


def format_sol(lamports: int, places: int = 4) -> str:
    sol = Decimal(lamports) / LAMPORTS_PER_SOL
    return f"{sol:.{places}f} SOL"


def make_request(
    payer: Optional[Pubkey],
    amount: Union[str, int],
    validator: Optional[Union[Pubkey, str]],
) -> StakeRequest:
    """Validates user input into a stake request. Makes no network calls."""
    if payer is None:
        raise InputInvalid("Connect wallet first.")
    if not validator:
        raise InputInvalid("No validator vote account configured.")
    if isinstance(validator, str):
        try:
            validator = Pubkey.from_string(validator)
        except ValueError:
            raise InputInvalid(f"Invalid validator vote account {validator!r}.")
    if isinstance(amount, int):
        if amount <= 0 or amount > MAX_LAMPORTS:
            raise InputInvalid("Enter a valid amount.")
        lamports = amount
    else:
        lamports = parse_amount(amount)
    return StakeRequest(payer=payer, amount_lamports=lamports, validator=validator)
