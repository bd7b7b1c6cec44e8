"""Builds the create-and-delegate instructions for a stake run."""

from solana.constants import SYSTEM_PROGRAM_ID
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.sysvar import CLOCK, STAKE_HISTORY
from solders.transaction import Transaction
import solders.system_program as sys

from stake.constants import STAKE_LEN, STAKE_PROGRAM_ID, SYSVAR_STAKE_CONFIG_ID
from stake.state import Authorized, Lockup
import stake.instructions as st

from delegation.state import BuiltOperation, StakeRequest


def build_operation(request: StakeRequest, stake_account: Keypair) -> BuiltOperation:
    """Creates, funds and delegates ``stake_account`` with the payer as both authorities.

    Account creation comes first, delegation is only valid on an initialized,
    funded stake account.
    """
    payer = request.payer
    create = sys.create_account(
        sys.CreateAccountParams(
            from_pubkey=payer,
            to_pubkey=stake_account.pubkey(),
            lamports=request.amount_lamports,
            space=STAKE_LEN,
            owner=STAKE_PROGRAM_ID,
        )
    )
    initialize = st.initialize(
        st.InitializeParams(
            stake=stake_account.pubkey(),
            authorized=Authorized(
                staker=payer,
                withdrawer=payer,
            ),
            lockup=Lockup(
                unix_timestamp=0,
                epoch=0,
                custodian=SYSTEM_PROGRAM_ID,
            )
        )
    )
    delegate = st.delegate_stake(
        st.DelegateStakeParams(
            stake=stake_account.pubkey(),
            vote=request.validator,
            clock_sysvar=CLOCK,
            stake_history_sysvar=STAKE_HISTORY,
            stake_config_id=SYSVAR_STAKE_CONFIG_ID,
            staker=payer,
        )
    )
    return BuiltOperation(
        request=request,
        stake_account=stake_account,
        instructions=(create, initialize, delegate),
    )


def compile_transaction(built: BuiltOperation, recent_blockhash: Hash) -> Transaction:
    """Binds ``built`` to a blockhash and adds the stake account's signature.

    The payer's signature slot is left empty for the wallet.
    """
    message = Message.new_with_blockhash(list(built.instructions), built.request.payer, recent_blockhash)
    txn = Transaction.new_unsigned(message)
    txn.partial_sign([built.stake_account], recent_blockhash)
    return txn
