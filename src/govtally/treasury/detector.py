"""
Treasury spend classification.

A treasury spend (tspend) pays out of the protocol treasury. Its single input
does not reference a previous outpoint; the node marks it with a
``treasuryspend`` key instead. Minimal mempool views can lack that marker, in
which case a version-3 transaction paying to a ``treasurygen-*`` script is
accepted as well.

None of these functions raise: anything that cannot be read is "not a match".
"""

from typing import Any, Mapping, Optional, Tuple, Union

from ..ledger.types import TransactionRecord

TREASURY_SPEND_TX_VERSION = 3
TREASURY_GEN_SCRIPT_MARKER = "treasurygen"

TransactionLike = Union[TransactionRecord, Mapping[str, Any]]


def as_transaction_record(tx: Any) -> Optional[TransactionRecord]:
    if isinstance(tx, TransactionRecord):
        return tx
    if isinstance(tx, Mapping):
        return TransactionRecord.from_dict(tx)
    return None


def is_treasury_spend(tx: TransactionLike) -> bool:
    """Return True if `tx` is a treasury spend."""
    record = as_transaction_record(tx)
    if record is None:
        return False

    if any(tx_in.has_treasury_spend for tx_in in record.vin):
        return True

    if record.version != TREASURY_SPEND_TX_VERSION:
        return False

    return any(
        TREASURY_GEN_SCRIPT_MARKER in (tx_out.script_type or "").lower()
        for tx_out in record.vout
    )


def is_vote_transaction(tx: TransactionLike) -> bool:
    """Return True if `tx` is a vote (its first input is a stakebase)."""
    record = as_transaction_record(tx)
    if record is None or not record.vin:
        return False
    return record.vin[0].has_stakebase


def spend_amount_and_payee(tx: TransactionLike) -> Tuple[float, str]:
    """Total output value and the first payee address found across outputs."""
    record = as_transaction_record(tx)
    if record is None:
        return 0.0, ""

    amount = sum(tx_out.value for tx_out in record.vout)
    payee = next(
        (tx_out.first_address for tx_out in record.vout if tx_out.first_address),
        "",
    )
    return amount, payee
