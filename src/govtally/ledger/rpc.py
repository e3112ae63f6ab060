"""
dcrd JSON-RPC data source.

Talks to a dcrd node over HTTP(S) with basic auth, using one aiohttp session
per client. dcrd serves its RPC endpoint over TLS with a self-signed
certificate by default, so the certificate path can be supplied as a CA file.
"""

import asyncio
import itertools
import ssl
from typing import Any, Dict, List, Optional

import aiohttp

from ..config import LedgerConfig
from ..errors import LedgerError, create_ledger_error
from ..logging import get_logger
from .source import LedgerDataSource
from .types import BlockRecord, TransactionRecord

logger = get_logger(__name__)


class DcrdRPCClient(LedgerDataSource):
    """dcrd RPC client implementing `LedgerDataSource`."""

    def __init__(self, config: LedgerConfig):
        """Initialize dcrd RPC client."""
        super().__init__()
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None
        self._ids = itertools.count(1)
        self._ssl_context = self._build_ssl_context() if config.use_tls else None
        logger.info(f"Initialized dcrd RPC client for {config.url}")

    def _build_ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context(cafile=self.config.rpc_cert)
        if not self.config.verify_tls:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                auth=aiohttp.BasicAuth(self.config.rpc_user, self.config.rpc_password),
                timeout=aiohttp.ClientTimeout(total=self.config.rpc_timeout),
            )
        return self._session

    async def _make_request(self, method: str, params: List[Any] = None) -> Any:
        """Make an RPC request and return its ``result`` field."""
        payload = {
            "jsonrpc": "1.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        request_kwargs: Dict[str, Any] = {"json": payload}
        if self._ssl_context is not None:
            request_kwargs["ssl"] = self._ssl_context

        try:
            async with self._get_session().post(self.config.url, **request_kwargs) as response:
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = None
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.stats.record(method, ok=False)
            raise create_ledger_error(method, e, endpoint=self.config.url)

        if not isinstance(body, dict):
            self.stats.record(method, ok=False)
            raise LedgerError(
                f"RPC call '{method}' returned HTTP {status} without a JSON body",
                method=method,
                endpoint=self.config.url,
                status_code=status,
            )

        error = body.get("error")
        if error:
            self.stats.record(method, ok=False)
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise LedgerError(
                f"RPC error from '{method}': {message}",
                method=method,
                endpoint=self.config.url,
                status_code=status,
            )

        self.stats.record(method)
        return body.get("result")

    async def current_height(self) -> int:
        result = await self._make_request("getblockcount")
        return self._expect_int("getblockcount", result)

    async def block_hash_at(self, height: int) -> str:
        result = await self._make_request("getblockhash", [height])
        if not isinstance(result, str):
            raise LedgerError(f"getblockhash({height}) returned {result!r}", method="getblockhash")
        return result

    async def block_by_hash(self, block_hash: str) -> BlockRecord:
        # verbose=true, verbosetx=false: transaction ids only
        result = await self._make_request("getblock", [block_hash, True, False])
        if not isinstance(result, dict):
            raise LedgerError(f"getblock({block_hash}) returned {result!r}", method="getblock")
        try:
            return BlockRecord.from_dict(result)
        except ValueError as e:
            raise create_ledger_error("getblock", e)

    async def transaction_by_hash(self, tx_id: str) -> TransactionRecord:
        result = await self._make_request("getrawtransaction", [tx_id, 1])
        if not isinstance(result, dict):
            raise LedgerError(
                f"getrawtransaction({tx_id}) returned {result!r}", method="getrawtransaction"
            )
        return TransactionRecord.from_dict(result)

    async def mempool_tx_ids(self) -> List[str]:
        result = await self._make_request("getrawmempool", [False])
        if isinstance(result, dict):
            return list(result.keys())
        if isinstance(result, list):
            return [tx_id for tx_id in result if isinstance(tx_id, str)]
        raise LedgerError(f"getrawmempool returned {result!r}", method="getrawmempool")

    async def block_header_time(self, block_hash: str) -> int:
        result = await self._make_request("getblockheader", [block_hash])
        if not isinstance(result, dict):
            raise LedgerError(
                f"getblockheader({block_hash}) returned {result!r}", method="getblockheader"
            )
        return self._expect_int("getblockheader", result.get("time"))

    async def treasury_balance(self) -> int:
        result = await self._make_request("gettreasurybalance")
        if not isinstance(result, dict):
            raise LedgerError(
                f"gettreasurybalance returned {result!r}", method="gettreasurybalance"
            )
        return self._expect_int("gettreasurybalance", result.get("balance"))

    @staticmethod
    def _expect_int(method: str, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise LedgerError(f"{method} returned non-numeric value {value!r}", method=method)
        return int(value)

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
        logger.info("dcrd RPC client closed")
