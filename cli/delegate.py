import argparse
import asyncio
import logging
import sys

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.pubkey import Pubkey

from delegation.amount import format_sol
from delegation.config import DEFAULT_ENDPOINT, DEFAULT_VALIDATOR, StakeConfig
from delegation.gate import AutoApproveGate, ConsoleGate
from delegation.pipeline import StakePipeline
from delegation.session import StakeSession
from delegation.state import Outcome, StakeReport
from delegation.wallet import KeypairWallet, SendingKeypairWallet, keypair_from_file


async def get_client(endpoint: str) -> AsyncClient:
    print(f'Connecting to network at {endpoint}')
    async_client = AsyncClient(endpoint=endpoint, commitment=Confirmed)
    total_attempts = 10
    current_attempt = 0
    while not await async_client.is_connected():
        if current_attempt == total_attempts:
            raise Exception(f"Could not connect to {endpoint}")
        else:
            current_attempt += 1
        await asyncio.sleep(1)
    return async_client


async def delegate(config: StakeConfig, keyfile: str, amount: str, yes: bool, sign_and_send: bool) -> StakeReport:
    async_client = await get_client(config.rpc_endpoint)
    try:
        keypair = keypair_from_file(keyfile)
        wallet = SendingKeypairWallet(keypair, async_client) if sign_and_send else KeypairWallet(keypair)
        session = StakeSession(async_client, config)
        await session.connect(wallet)
        print(f'Wallet: {session.pubkey}')
        print(f'Balance: {format_sol(await session.refresh_balance())}')

        if amount == 'max':
            stake_amount = await session.max_stakeable()
            print(f'Staking maximum: {format_sol(stake_amount, 9)}')
        else:
            stake_amount = amount

        gate = AutoApproveGate() if yes else ConsoleGate()
        pipeline = StakePipeline(session, gate, config)
        print('Preparing transaction…')
        report = await pipeline.stake(stake_amount)
        print(report.message)
        if report.outcome is Outcome.SUCCESS:
            print(f'Stake account: {report.stake_account}')
            print(f'Balance: {format_sol(await session.refresh_balance())}')
        await session.disconnect()
        return report
    finally:
        await async_client.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Create a stake account and delegate it to a validator.')
    parser.add_argument('amount', metavar='AMOUNT', type=str,
                        help='Amount of SOL to stake, e.g. 0.5 or 0,5, or "max" to stake the balance\
                         minus a 0.01 SOL fee reserve')
    parser.add_argument('payer', metavar='PAYER_KEYPAIR', type=str,
                        help='Payer and stake authority, given by a keypair file, e.g. wallet.json')
    parser.add_argument('--endpoint', metavar='ENDPOINT_URL', type=str,
                        default=DEFAULT_ENDPOINT,
                        help='RPC endpoint to use, e.g. https://api.mainnet-beta.solana.com')
    parser.add_argument('--validator', metavar='VOTE_ADDRESS', type=str,
                        default=str(DEFAULT_VALIDATOR),
                        help='Vote account to delegate to, given by a public key in base-58')
    parser.add_argument('--network', metavar='LABEL', type=str, default='mainnet-beta',
                        help='Network label shown in the output')
    parser.add_argument('--yes', action='store_true',
                        help='Skip the confirmation prompt')
    parser.add_argument('--sign-and-send', action='store_true',
                        help='Let the wallet submit the transaction instead of broadcasting it here')
    parser.add_argument('--verbose', action='store_true',
                        help='Log every pipeline step')

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    try:
        validator = Pubkey.from_string(args.validator)
    except ValueError:
        parser.error(f'invalid validator vote account {args.validator!r}')
    config = StakeConfig(rpc_endpoint=args.endpoint, validator=validator, network_label=args.network)
    print(f'Network: {config.network_label}')
    print(f'Validator: {config.validator}')
    report = asyncio.run(delegate(config, args.payer, args.amount, args.yes, args.sign_and_send))
    return {Outcome.SUCCESS: 0, Outcome.FAILURE: 1, Outcome.UNKNOWN: 2}[report.outcome]


if __name__ == "__main__":
    sys.exit(main())
