import httpx
import pytest
from solana.rpc.core import RPCException
from solders.keypair import Keypair

from stake.constants import LAMPORTS_PER_SOL
from delegation.builder import build_operation
from delegation.errors import BroadcastFailed, EndpointUnavailable, WalletUnsupported
from delegation.state import Outcome, StakeRequest
from delegation.submitter import Submitter
from delegation.wallet import KeypairWallet, SendingKeypairWallet, WalletError


def built_for(payer: Keypair):
    request = StakeRequest(payer=payer.pubkey(), amount_lamports=LAMPORTS_PER_SOL // 2,
                           validator=Keypair().pubkey())
    return build_operation(request, Keypair())


async def connected(wallet):
    await wallet.connect()
    return wallet


class DecliningWallet(KeypairWallet):
    async def sign_transaction(self, txn):
        raise WalletError("User rejected the request.")


@pytest.mark.asyncio
async def test_sign_only_broadcast(client, payer):
    built = built_for(payer)
    wallet = await connected(KeypairWallet(payer))
    result = await Submitter(client).submit(built, wallet)

    sent = client.sent[0]
    assert client.count("send_raw_transaction") == 1
    assert sent.is_signed()
    assert sent.message.account_keys[1] == built.stake_pubkey
    assert result.signature == sent.signatures[0]
    assert result.recent_blockhash == client.blockhashes[-1]
    assert sent.message.recent_blockhash == client.blockhashes[-1]


@pytest.mark.asyncio
async def test_fresh_blockhash_for_every_submission(client, payer):
    built = built_for(payer)
    wallet = await connected(KeypairWallet(payer))
    first = await Submitter(client).submit(built, wallet)
    second = await Submitter(client).submit(built, wallet)
    assert first.recent_blockhash != second.recent_blockhash
    assert client.sent[0].message.account_keys[1] == client.sent[1].message.account_keys[1]


@pytest.mark.asyncio
async def test_sign_and_send(client, payer):
    built = built_for(payer)
    wallet = await connected(SendingKeypairWallet(payer, client))
    result = await Submitter(client).submit(built, wallet)
    assert client.count("send_raw_transaction") == 1
    assert result.signature == client.sent[0].signatures[0]


@pytest.mark.asyncio
async def test_broadcast_retries_transport_failures(client, payer):
    client.send_results = [httpx.ConnectError("reset"), httpx.ReadTimeout("slow")]
    wallet = await connected(KeypairWallet(payer))
    result = await Submitter(client).submit(built_for(payer), wallet)
    assert client.count("send_raw_transaction") == 3
    assert len({bytes(txn) for txn in client.sent}) == 1
    assert result.signature == client.sent[0].signatures[0]


@pytest.mark.asyncio
async def test_broadcast_gives_up_after_three_attempts(client, payer):
    client.send_results = [httpx.ConnectError("reset")] * 4
    wallet = await connected(KeypairWallet(payer))
    with pytest.raises(BroadcastFailed) as info:
        await Submitter(client).submit(built_for(payer), wallet)
    assert client.count("send_raw_transaction") == 3
    assert info.value.may_have_landed
    assert info.value.signature == client.sent[0].signatures[0]
    assert info.value.outcome is Outcome.UNKNOWN


@pytest.mark.asyncio
async def test_ledger_rejection_is_not_retried(client, payer):
    client.send_results = [RPCException("Transaction simulation failed: insufficient lamports")]
    wallet = await connected(KeypairWallet(payer))
    with pytest.raises(BroadcastFailed) as info:
        await Submitter(client).submit(built_for(payer), wallet)
    assert client.count("send_raw_transaction") == 1
    assert not info.value.may_have_landed
    assert info.value.outcome is Outcome.FAILURE


@pytest.mark.asyncio
async def test_rejection_after_lost_send_may_have_landed(client, payer):
    client.send_results = [httpx.ReadTimeout("slow"), RPCException("account already in use")]
    wallet = await connected(KeypairWallet(payer))
    with pytest.raises(BroadcastFailed) as info:
        await Submitter(client).submit(built_for(payer), wallet)
    assert info.value.may_have_landed


@pytest.mark.asyncio
async def test_already_processed_counts_as_sent(client, payer):
    client.send_results = [httpx.ReadTimeout("slow"), RPCException("This transaction has already been processed")]
    wallet = await connected(KeypairWallet(payer))
    result = await Submitter(client).submit(built_for(payer), wallet)
    assert result.signature == client.sent[0].signatures[0]


@pytest.mark.asyncio
async def test_wallet_refusal(client, payer):
    wallet = await connected(DecliningWallet(payer))
    with pytest.raises(BroadcastFailed) as info:
        await Submitter(client).submit(built_for(payer), wallet)
    assert info.value.outcome is Outcome.FAILURE
    assert client.mutations == []


@pytest.mark.asyncio
async def test_wallet_without_signing(client, payer):
    class ReadOnlyWallet:
        pubkey = payer.pubkey()

    with pytest.raises(WalletUnsupported):
        await Submitter(client).submit(built_for(payer), ReadOnlyWallet())
    assert client.calls == []


@pytest.mark.asyncio
async def test_unsigned_envelope_is_not_broadcast(client, payer):
    class LazyWallet(KeypairWallet):
        async def sign_transaction(self, txn):
            return txn

    wallet = await connected(LazyWallet(payer))
    with pytest.raises(BroadcastFailed, match="not fully signed"):
        await Submitter(client).submit(built_for(payer), wallet)
    assert client.mutations == []


@pytest.mark.asyncio
@pytest.mark.parametrize("wallet_type", [KeypairWallet, SendingKeypairWallet])
async def test_blockhash_refused_sends_nothing(client, payer, wallet_type):
    client.blockhash_error = RPCException("Node is behind by 120 slots")
    wallet = KeypairWallet(payer) if wallet_type is KeypairWallet else SendingKeypairWallet(payer, client)
    with pytest.raises(EndpointUnavailable) as info:
        await Submitter(client).submit(built_for(payer), await connected(wallet))
    assert info.value.outcome is Outcome.FAILURE
    assert client.mutations == []
