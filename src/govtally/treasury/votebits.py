"""
Treasury spend vote decoding.

Votes on treasury spends travel in a null-data output of the vote
transaction:

    6a <len> <prefix:2> <tspend hash, reversed:32> <vote bits:1>

The low two bits of the vote byte carry the choice. Vote transactions also
carry unrelated null-data outputs and third parties can put anything there,
so every malformed payload decodes to ``UNKNOWN`` instead of raising.
"""

import string
from enum import Enum
from typing import Any

from .detector import TransactionLike, as_transaction_record

OP_RETURN = 0x6A
DEFAULT_VOTE_PREFIX = "7476"  # "tv"
HASH_HEX_LEN = 64
NULL_DATA_SCRIPT = "nulldata"


class VoteChoice(Enum):
    """Decoded treasury spend vote."""

    ABSTAIN = "abstain"
    YES = "yes"
    NO = "no"
    INVALID = "invalid"
    UNKNOWN = "unknown"


_CHOICE_BITS = {
    0x00: VoteChoice.ABSTAIN,
    0x01: VoteChoice.YES,
    0x02: VoteChoice.NO,
    0x03: VoteChoice.INVALID,
}
_BITS_FOR_CHOICE = {choice: bits for bits, choice in _CHOICE_BITS.items()}


def reverse_hex_bytes(hex_str: str) -> str:
    """Reverse the byte order of a hex string ("abcd1234" -> "3412cdab").

    Odd-length input is returned unchanged.
    """
    if len(hex_str) % 2 != 0:
        return hex_str
    return "".join(hex_str[i:i + 2] for i in range(len(hex_str) - 2, -1, -2))


def _is_hex(value: str) -> bool:
    # bytes.fromhex tolerates whitespace, so check the digits directly
    return len(value) % 2 == 0 and all(ch in string.hexdigits for ch in value)


def decode_vote_bits(hex_data: Any, target_hash: Any) -> VoteChoice:
    """Decode the vote on `target_hash` carried by a null-data script."""
    if not isinstance(hex_data, str) or not isinstance(target_hash, str):
        return VoteChoice.UNKNOWN

    # opcode + push length, then the 2-byte prefix
    payload = hex_data[8:]
    if len(payload) < HASH_HEX_LEN:
        return VoteChoice.UNKNOWN

    hash_hex = payload[:HASH_HEX_LEN]
    if not _is_hex(hash_hex):
        return VoteChoice.UNKNOWN
    if reverse_hex_bytes(hash_hex).lower() != target_hash.lower():
        return VoteChoice.UNKNOWN

    vote_hex = payload[HASH_HEX_LEN:HASH_HEX_LEN + 2]
    if len(vote_hex) < 2 or not _is_hex(vote_hex):
        return VoteChoice.UNKNOWN

    return _CHOICE_BITS[bytes.fromhex(vote_hex)[0] & 0x03]


def encode_vote_bits(
    target_hash: str, choice: VoteChoice, prefix: str = DEFAULT_VOTE_PREFIX
) -> str:
    """Build the null-data script hex voting `choice` on `target_hash`."""
    if choice not in _BITS_FOR_CHOICE:
        raise ValueError(f"cannot encode vote choice {choice!r}")
    if len(target_hash) != HASH_HEX_LEN or not _is_hex(target_hash):
        raise ValueError("target hash must be 32 bytes of hex")
    if len(prefix) != 4 or not _is_hex(prefix):
        raise ValueError("prefix must be 2 bytes of hex")

    data = prefix + reverse_hex_bytes(target_hash.lower()) + f"{_BITS_FOR_CHOICE[choice]:02x}"
    return f"{OP_RETURN:02x}{len(data) // 2:02x}{data}"


def parse_spend_vote(tx: TransactionLike, spend_hash: str) -> VoteChoice:
    """Find the vote on `spend_hash` among a vote transaction's outputs."""
    record = as_transaction_record(tx)
    # A vote always has at least the stake reference and vote bits outputs
    if record is None or len(record.vout) < 2:
        return VoteChoice.UNKNOWN

    for tx_out in record.vout:
        script = tx_out.script
        if script is None or script.type != NULL_DATA_SCRIPT or not script.hex:
            continue
        choice = decode_vote_bits(script.hex, spend_hash)
        if choice is not VoteChoice.UNKNOWN:
            return choice

    return VoteChoice.UNKNOWN


__all__ = [
    "VoteChoice",
    "decode_vote_bits",
    "encode_vote_bits",
    "parse_spend_vote",
    "reverse_hex_bytes",
]
