"""Values passed between the stages of a stake run."""

from enum import Enum
from typing import NamedTuple, Optional, Tuple

from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature


class Outcome(Enum):
    """What a user can conclude about a stake run."""
    SUCCESS = "success"
    """The stake account was created and delegated."""
    FAILURE = "failure"
    """Nothing was staked, it is safe to try again."""
    UNKNOWN = "unknown"
    """The transaction may have landed, check its signature before trying again."""


class StakeRequest(NamedTuple):
    """Validated input for a single stake run."""
    payer: Pubkey
    amount_lamports: int
    validator: Pubkey


class CostEstimate(NamedTuple):
    """Rent and fee figures for a stake request."""
    rent_exempt_minimum: int
    estimated_fee: int
    amount: int
    balance: int

    @property
    def total_required(self) -> int:
        return self.amount + self.estimated_fee

    def with_fee(self, fee: int) -> 'CostEstimate':
        return self._replace(estimated_fee=fee)


class BuiltOperation(NamedTuple):
    """Instructions for one run, tied to the stake account keypair that must co-sign them.

    The keypair is generated once per run and travels with the instructions
    up to the final broadcast.
    """
    request: StakeRequest
    stake_account: Keypair
    instructions: Tuple[Instruction, ...]

    @property
    def stake_pubkey(self) -> Pubkey:
        return self.stake_account.pubkey()

    @property
    def create_step(self) -> Tuple[Instruction, ...]:
        """System account creation and stake initialization."""
        return self.instructions[:-1]

    @property
    def delegate_step(self) -> Instruction:
        return self.instructions[-1]


class SimulationKind(Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


class SimulationOutcome(NamedTuple):
    """Result of a dry run.

    ``fee`` is the refined fee on ``OK`` and the fallback fee otherwise.
    """
    kind: SimulationKind
    fee: int
    reason: Optional[str] = None
    logs: Tuple[str, ...] = ()
    units_consumed: Optional[int] = None

    @property
    def failed(self) -> bool:
        return self.kind is SimulationKind.FAILED

    @property
    def skipped(self) -> bool:
        return self.kind is SimulationKind.SKIPPED


class StakePreview(NamedTuple):
    """Summary presented to the user before signing."""
    payer: Pubkey
    validator: Pubkey
    stake_account: Pubkey
    amount: int
    fee: int
    rent_exempt_minimum: int
    fee_is_estimate: bool


class SubmissionResult(NamedTuple):
    signature: Signature
    recent_blockhash: Hash
    last_valid_block_height: int


class ConfirmationStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def succeeded(self) -> bool:
        return self in (ConfirmationStatus.CONFIRMED, ConfirmationStatus.FINALIZED)

    @property
    def terminal(self) -> bool:
        return self is not ConfirmationStatus.PENDING


class Confirmation(NamedTuple):
    """Terminal state of a watched signature."""
    status: ConfirmationStatus
    signature: Signature
    polls: int = 0
    error: Optional[object] = None
    recovered: bool = False
    """Set when the status came from the historical lookup after polling gave up."""


class StakeReport(NamedTuple):
    """Final, user-facing result of a stake run."""
    outcome: Outcome
    message: str
    signature: Optional[Signature] = None
    stake_account: Optional[Pubkey] = None
    cancelled: bool = False

    @property
    def safe_to_retry(self) -> bool:
        return self.outcome is Outcome.FAILURE
