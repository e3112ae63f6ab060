"""
Mempool probe for treasury spends that are still being voted on.
"""

from dataclasses import replace
from typing import List, Optional

from ..errors import DataSourceUnavailableError, LedgerError
from ..ledger.source import LedgerDataSource
from ..ledger.types import TransactionRecord
from ..logging import LogContext, get_logger
from .detector import is_treasury_spend, spend_amount_and_payee
from .models import SpendRecord

logger = get_logger(__name__)

_CONTEXT = LogContext(component="mempool", operation="probe")


def build_spend_record(tx: TransactionRecord, current_height: int) -> SpendRecord:
    """Describe a mempool treasury spend relative to the chain tip."""
    amount, payee = spend_amount_and_payee(tx)
    expiry = tx.expiry or 0
    return SpendRecord(
        tx_hash=tx.txid or "",
        amount=amount,
        payee=payee,
        expiry_height=expiry,
        current_height=current_height,
        blocks_remaining=expiry - current_height,
        status="voting",
    )


class MempoolProber:
    """Synchronous scan of pending transactions; nothing is cached."""

    def __init__(self, ledger: Optional[LedgerDataSource]):
        self.ledger = ledger

    async def probe(self) -> List[SpendRecord]:
        """Return the treasury spends currently in the mempool.

        Raises:
            DataSourceUnavailableError: no ledger is configured.

        Every other failure degrades to a shorter (possibly empty) list.
        """
        if self.ledger is None:
            raise DataSourceUnavailableError()

        try:
            tx_ids = await self.ledger.mempool_tx_ids()
        except LedgerError as e:
            logger.warning(f"Failed to list mempool: {e}", context=_CONTEXT)
            return []

        try:
            current_height = await self.ledger.current_height()
        except LedgerError as e:
            logger.warning(f"Failed to get current height: {e}", context=_CONTEXT)
            current_height = 0

        spends: List[SpendRecord] = []
        for tx_id in tx_ids:
            try:
                tx = await self.ledger.transaction_by_hash(tx_id)
            except LedgerError as e:
                logger.warning(f"Failed to get transaction {tx_id}: {e}", context=_CONTEXT)
                continue

            if is_treasury_spend(tx):
                if tx.txid is None:
                    tx = replace(tx, txid=tx_id)
                spends.append(build_spend_record(tx, current_height))

        logger.debug(
            f"Mempool probe checked {len(tx_ids)} transactions, found {len(spends)} treasury spends",
            context=_CONTEXT,
        )
        return spends
