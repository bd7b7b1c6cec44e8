"""Stake Program Instructions."""

from enum import IntEnum
from typing import NamedTuple

from construct import Switch  # type: ignore
from construct import Int32ul, Pass  # type: ignore
from construct import Struct

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.sysvar import RENT

from stake.constants import STAKE_PROGRAM_ID
from stake.state import AUTHORIZED_LAYOUT, LOCKUP_LAYOUT, Authorized, Lockup


class InitializeParams(NamedTuple):
    """Initialize stake transaction params."""

    stake: Pubkey
    """`[w]` Uninitialized stake account."""
    authorized: Authorized
    """Information about the staker and withdrawer keys."""
    lockup: Lockup
    """Stake lockup, if any."""


class DelegateStakeParams(NamedTuple):
    """Delegate stake transaction params."""

    stake: Pubkey
    """`[w]` Initialized stake account to be delegated."""
    vote: Pubkey
    """`[]` Vote account to which this stake will be delegated."""
    clock_sysvar: Pubkey
    """`[]` Clock sysvar."""
    stake_history_sysvar: Pubkey
    """`[]` Stake history sysvar that carries stake warmup/cooldown history."""
    stake_config_id: Pubkey
    """`[]` Address of config account that carries stake config."""
    staker: Pubkey
    """`[s]` Stake authority."""


class InstructionType(IntEnum):
    """Stake Instruction Types."""

    INITIALIZE = 0
    AUTHORIZE = 1
    DELEGATE_STAKE = 2
    SPLIT = 3
    WITHDRAW = 4
    DEACTIVATE = 5
    SET_LOCKUP = 6
    MERGE = 7
    AUTHORIZE_WITH_SEED = 8
    INITIALIZE_CHECKED = 9
    AUTHORIZED_CHECKED = 10
    AUTHORIZED_CHECKED_WITH_SEED = 11
    SET_LOCKUP_CHECKED = 12


INITIALIZE_LAYOUT = Struct(
    "authorized" / AUTHORIZED_LAYOUT,
    "lockup" / LOCKUP_LAYOUT,
)


INSTRUCTIONS_LAYOUT = Struct(
    "instruction_type" / Int32ul,
    "args"
    / Switch(
        lambda this: this.instruction_type,
        {
            InstructionType.INITIALIZE: INITIALIZE_LAYOUT,
            InstructionType.DELEGATE_STAKE: Pass,
        },
        default=Pass,
    ),
)


def initialize(params: InitializeParams) -> Instruction:
    """Creates a transaction instruction to initialize a new stake."""
    return Instruction(
        program_id=STAKE_PROGRAM_ID,
        data=INSTRUCTIONS_LAYOUT.build(
            dict(
                instruction_type=InstructionType.INITIALIZE,
                args=dict(
                    authorized=params.authorized.as_bytes_dict(),
                    lockup=params.lockup.as_bytes_dict(),
                ),
            )
        ),
        accounts=[
            AccountMeta(pubkey=params.stake, is_signer=False, is_writable=True),
            AccountMeta(pubkey=RENT, is_signer=False, is_writable=False),
        ],
    )


def delegate_stake(params: DelegateStakeParams) -> Instruction:
    """Creates an instruction to delegate a stake account."""
    return Instruction(
        program_id=STAKE_PROGRAM_ID,
        data=INSTRUCTIONS_LAYOUT.build(
            dict(
                instruction_type=InstructionType.DELEGATE_STAKE,
                args=None,
            )
        ),
        accounts=[
            AccountMeta(pubkey=params.stake, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.vote, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.clock_sysvar, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.stake_history_sysvar, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.stake_config_id, is_signer=False, is_writable=False),
            AccountMeta(pubkey=params.staker, is_signer=True, is_writable=False),
        ],
    )
