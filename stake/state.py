"""Stake State."""

from typing import NamedTuple, Dict
from construct import Bytes, Struct, Int64ul  # type: ignore

from solders.pubkey import Pubkey

PUBLIC_KEY_LAYOUT = Bytes(32)


class Lockup(NamedTuple):
    """Lockup for a stake account."""
    unix_timestamp: int
    epoch: int
    custodian: Pubkey

    def as_bytes_dict(self) -> Dict:
        self_dict = self._asdict()
        self_dict['custodian'] = bytes(self_dict['custodian'])
        return self_dict


class Authorized(NamedTuple):
    """Define who is authorized to change a stake."""
    staker: Pubkey
    withdrawer: Pubkey

    def as_bytes_dict(self) -> Dict:
        return {
            'staker': bytes(self.staker),
            'withdrawer': bytes(self.withdrawer),
        }


LOCKUP_LAYOUT = Struct(
    "unix_timestamp" / Int64ul,
    "epoch" / Int64ul,
    "custodian" / PUBLIC_KEY_LAYOUT,
)


AUTHORIZED_LAYOUT = Struct(
    "staker" / PUBLIC_KEY_LAYOUT,
    "withdrawer" / PUBLIC_KEY_LAYOUT,
)
