from types import SimpleNamespace
from typing import List

import pytest
import pytest_asyncio

from solana.exceptions import SolanaRpcException
from solders.hash import Hash
from solders.keypair import Keypair
from solders.transaction import Transaction
from solders.transaction_status import TransactionConfirmationStatus

from stake.constants import LAMPORTS_PER_SOL
from delegation.config import StakeConfig
from delegation.pipeline import StakePipeline
from delegation.session import StakeSession
from delegation.wallet import KeypairWallet

RENT_EXEMPT_LAMPORTS: int = 2_282_880
NETWORK_FEE_LAMPORTS: int = 5_000
MUTATING_CALLS = {"send_raw_transaction"}


class RpcFailure(SolanaRpcException):
    """``SolanaRpcException`` as the client raises it, built from a plain message."""

    def __init__(self, message: str):
        Exception.__init__(self, message)
        self.error_msg = message


def resp(value):
    return SimpleNamespace(value=value)


def status(confirmation="confirmed", err=None, slot=100):
    levels = {
        "processed": TransactionConfirmationStatus.Processed,
        "confirmed": TransactionConfirmationStatus.Confirmed,
        "finalized": TransactionConfirmationStatus.Finalized,
    }
    return SimpleNamespace(confirmation_status=levels[confirmation], err=err, slot=slot)


class StubClient:
    """In-memory stand-in for ``AsyncClient`` with scripted answers.

    ``statuses`` is consumed one entry per regular poll (``None`` once it runs
    dry); ``history_status`` answers lookups with history search. Exceptions
    in either, or in ``send_results``, are raised instead of returned.
    """

    def __init__(self, balance: int = LAMPORTS_PER_SOL, rent: int = RENT_EXEMPT_LAMPORTS):
        self.balance = balance
        self.rent = rent
        self.fee = NETWORK_FEE_LAMPORTS
        self.fee_error = None
        self.rent_error = None
        self.blockhash_error = None
        self.simulation_err = None
        self.simulation_error = None
        self.send_results: List = []
        self.statuses: List = []
        self.history_status = None
        self.calls: List[str] = []
        self.simulated: List[Transaction] = []
        self.sent: List[Transaction] = []
        self.blockhashes: List[Hash] = []

    def count(self, name: str) -> int:
        return self.calls.count(name)

    @property
    def mutations(self) -> List[str]:
        return [call for call in self.calls if call in MUTATING_CALLS]

    async def get_balance(self, pubkey, commitment=None):
        self.calls.append("get_balance")
        return resp(self.balance)

    async def get_minimum_balance_for_rent_exemption(self, usize, commitment=None):
        self.calls.append("get_minimum_balance_for_rent_exemption")
        if self.rent_error is not None:
            raise self.rent_error
        return resp(self.rent)

    async def get_latest_blockhash(self, commitment=None):
        self.calls.append("get_latest_blockhash")
        if self.blockhash_error is not None:
            raise self.blockhash_error
        blockhash = Hash(bytes([len(self.blockhashes) + 1]) * 32)
        self.blockhashes.append(blockhash)
        return resp(SimpleNamespace(blockhash=blockhash, last_valid_block_height=1_000 + len(self.blockhashes)))

    async def get_fee_for_message(self, message, commitment=None):
        self.calls.append("get_fee_for_message")
        if self.fee_error is not None:
            raise self.fee_error
        return resp(self.fee)

    async def simulate_transaction(self, txn, sig_verify=False, commitment=None):
        self.calls.append("simulate_transaction")
        self.simulated.append(txn)
        if self.simulation_error is not None:
            raise self.simulation_error
        return resp(SimpleNamespace(
            err=self.simulation_err,
            logs=["Program Stake11111111111111111111111111111111111111 invoke [1]"],
            units_consumed=3_000,
        ))

    async def send_raw_transaction(self, txn, opts=None):
        self.calls.append("send_raw_transaction")
        sent = Transaction.from_bytes(txn)
        self.sent.append(sent)
        if self.send_results:
            result = self.send_results.pop(0)
            if isinstance(result, Exception):
                raise result
        return resp(sent.signatures[0])

    async def get_signature_statuses(self, signatures, search_transaction_history=False):
        if search_transaction_history:
            self.calls.append("history_lookup")
            result = self.history_status
        else:
            self.calls.append("get_signature_statuses")
            result = self.statuses.pop(0) if self.statuses else None
        if isinstance(result, Exception):
            raise result
        return resp([result])


class RecordingGate:
    def __init__(self, answer: bool = True):
        self.answer = answer
        self.previews = []

    async def confirm(self, preview) -> bool:
        self.previews.append(preview)
        return self.answer


class KeypairRecorder:
    """Keypair factory that remembers every stake account it hands out."""

    def __init__(self):
        self.generated: List[Keypair] = []

    def __call__(self) -> Keypair:
        keypair = Keypair()
        self.generated.append(keypair)
        return keypair


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def client() -> StubClient:
    return StubClient()


@pytest.fixture
def payer() -> Keypair:
    return Keypair()


@pytest.fixture
def config() -> StakeConfig:
    return StakeConfig(rpc_endpoint="http://127.0.0.1:8899")


@pytest_asyncio.fixture
async def session(client, payer, config) -> StakeSession:
    session = StakeSession(client, config)
    await session.connect(KeypairWallet(payer))
    return session


@pytest.fixture
def gate() -> RecordingGate:
    return RecordingGate()


@pytest.fixture
def keypairs() -> KeypairRecorder:
    return KeypairRecorder()


@pytest.fixture
def pipeline(session, gate, keypairs) -> StakePipeline:
    return StakePipeline(session, gate, keypair_factory=keypairs, sleep=no_sleep)
