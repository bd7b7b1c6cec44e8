"""Stake pipeline errors.

Every error carries the outcome a user should be told about: whether the
stake definitely did not happen (safe to retry) or may have happened (check
the signature before retrying).
"""

import asyncio
from typing import Optional

import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.core import RPCException
from solders.signature import Signature

from delegation.state import Outcome

TRANSPORT_ERRORS = (SolanaRpcException, httpx.HTTPError, asyncio.TimeoutError, OSError)
"""Errors raised when the RPC endpoint could not be reached or did not answer."""

RPC_ERRORS = TRANSPORT_ERRORS + (RPCException,)
"""Transport failures plus JSON-RPC error responses (node behind, rate limited, method not found)."""

EXPIRY_MARKERS = ("block height exceeded", "blockheight exceeded", "expired")


def describe_error(exc: BaseException) -> str:
    """Readable text for an RPC error. ``SolanaRpcException`` keeps it in ``error_msg``."""
    return getattr(exc, "error_msg", None) or str(exc) or type(exc).__name__


def is_expiry_error(exc: BaseException) -> bool:
    """True for errors shaped like a blockhash expiry, which do not prove the transaction failed."""
    text = describe_error(exc).lower()
    return any(marker in text for marker in EXPIRY_MARKERS)


class StakeError(Exception):
    """Base class for errors that end a stake run."""

    outcome = Outcome.FAILURE


class InputInvalid(StakeError):
    """Amount, payer or validator could not be used. Raised before any network call."""


class WalletUnsupported(InputInvalid):
    """The wallet exposes neither sign-and-send nor sign-only signing."""


class StakeInProgress(InputInvalid):
    """A stake run is already active for this session."""


class InsufficientFunds(StakeError):
    """Amount is below the rent-exempt minimum or amount plus fee exceeds the balance."""


class EndpointUnavailable(StakeError):
    """An RPC read needed before broadcast failed. Nothing was sent."""


class SimulationRejected(StakeError):
    """The ledger reported an execution error during the dry run."""


class UserCancelled(StakeError):
    """The user declined at the confirmation gate."""


class BroadcastFailed(StakeError):
    """The signed transaction could not be submitted.

    When ``may_have_landed`` is set the transaction could have reached the
    ledger and ``signature`` (when known) has to be checked before retrying.
    """

    def __init__(self, message: str, signature: Optional[Signature] = None, may_have_landed: bool = False):
        super().__init__(message)
        self.signature = signature
        self.may_have_landed = may_have_landed

    @property
    def outcome(self) -> Outcome:  # type: ignore[override]
        return Outcome.UNKNOWN if self.may_have_landed else Outcome.FAILURE


class ExecutionFailed(StakeError):
    """The transaction landed and the ledger reported an execution error."""

    def __init__(self, message: str, signature: Signature, error: object):
        super().__init__(message)
        self.signature = signature
        self.error = error


class ConfirmationAmbiguous(StakeError):
    """No terminal status was found for a submitted transaction, even in history."""

    outcome = Outcome.UNKNOWN

    def __init__(self, message: str, signature: Signature):
        super().__init__(message)
        self.signature = signature
