"""
Unit tests for the dcrd JSON-RPC client.
"""

import logging

logger = logging.getLogger(__name__)
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from govtally.config import LedgerConfig
from govtally.errors import LedgerError
from govtally.ledger.rpc import DcrdRPCClient
from govtally.ledger.types import BlockRecord, TransactionRecord


class FakeResponse:
    """Minimal stand-in for an aiohttp response context manager."""

    def __init__(self, body, status=200):
        self.status = status
        self._body = body

    async def json(self, content_type=None):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


def make_client(*responses, side_effect=None):
    client = DcrdRPCClient(
        LedgerConfig(rpc_host="node", rpc_user="u", rpc_password="p", use_tls=False)
    )
    session = MagicMock()
    session.closed = False
    if side_effect is not None:
        session.post = MagicMock(side_effect=side_effect)
    else:
        session.post = MagicMock(side_effect=list(responses))
    session.close = AsyncMock()
    client._session = session
    return client, session


class TestMakeRequest:
    """Test the JSON-RPC envelope handling."""

    @pytest.mark.asyncio
    async def test_payload_and_result(self):
        """Test request payload and result extraction."""
        client, session = make_client(FakeResponse({"result": 600000, "error": None, "id": 1}))

        assert await client.current_height() == 600000

        args, kwargs = session.post.call_args
        assert args[0] == "http://node:9109"
        payload = kwargs["json"]
        assert payload["method"] == "getblockcount"
        assert payload["params"] == []
        assert payload["jsonrpc"] == "1.0"
        assert "ssl" not in kwargs
        assert client.stats.calls["getblockcount"] == 1

    @pytest.mark.asyncio
    async def test_rpc_error_field(self):
        """Test an RPC error object raises LedgerError."""
        client, _ = make_client(
            FakeResponse({"result": None, "error": {"code": -5, "message": "No such tx"}}, 500)
        )

        with pytest.raises(LedgerError) as exc_info:
            await client.transaction_by_hash("ab" * 32)

        assert "No such tx" in exc_info.value.message
        assert exc_info.value.status_code == 500
        assert client.stats.failures["getrawtransaction"] == 1

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        """Test a non-JSON response raises LedgerError."""
        client, _ = make_client(FakeResponse(ValueError("not json"), 401))

        with pytest.raises(LedgerError) as exc_info:
            await client.current_height()

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Test transport errors are wrapped."""
        client, _ = make_client(side_effect=aiohttp.ClientConnectionError("refused"))

        with pytest.raises(LedgerError) as exc_info:
            await client.mempool_tx_ids()

        assert exc_info.value.method == "getrawmempool"
        assert isinstance(exc_info.value.cause, aiohttp.ClientConnectionError)

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test timeouts are wrapped."""
        client, _ = make_client(side_effect=asyncio.TimeoutError())

        with pytest.raises(LedgerError):
            await client.current_height()


class TestLedgerMethods:
    """Test each data source method against canned results."""

    @pytest.mark.asyncio
    async def test_block_at(self):
        """Test hash lookup followed by getblock."""
        client, session = make_client(
            FakeResponse({"result": "00aa"}),
            FakeResponse(
                {"result": {"height": 552500, "hash": "00aa", "time": 1620000000, "tx": ["t1"], "stx": ["s1"]}}
            ),
        )

        block = await client.block_at(552500)

        assert isinstance(block, BlockRecord)
        assert block.all_tx_ids == ("t1", "s1")
        getblock_params = session.post.call_args_list[1].kwargs["json"]["params"]
        assert getblock_params == ["00aa", True, False]

    @pytest.mark.asyncio
    async def test_block_without_height_is_ledger_error(self):
        """Test unusable getblock results."""
        client, _ = make_client(FakeResponse({"result": {"hash": "00aa"}}))

        with pytest.raises(LedgerError):
            await client.block_by_hash("00aa")

    @pytest.mark.asyncio
    async def test_transaction_by_hash(self):
        """Test verbose transaction parsing."""
        client, session = make_client(
            FakeResponse({"result": {"txid": "ab", "version": 3, "vin": [{"treasuryspend": "x"}], "vout": []}})
        )

        tx = await client.transaction_by_hash("ab")

        assert isinstance(tx, TransactionRecord)
        assert tx.vin[0].has_treasury_spend
        assert session.post.call_args.kwargs["json"]["params"] == ["ab", 1]

    @pytest.mark.asyncio
    async def test_mempool_list_and_dict(self):
        """Test both mempool result shapes."""
        client, _ = make_client(
            FakeResponse({"result": ["a", "b", 3]}),
            FakeResponse({"result": {"c": {}, "d": {}}}),
        )

        assert await client.mempool_tx_ids() == ["a", "b"]
        assert await client.mempool_tx_ids() == ["c", "d"]

    @pytest.mark.asyncio
    async def test_header_time_and_balance(self):
        """Test header time and treasury balance."""
        client, _ = make_client(
            FakeResponse({"result": {"time": 1620000000, "height": 552448}}),
            FakeResponse({"result": {"hash": "00", "height": 1, "balance": 123456789012}}),
        )

        assert await client.block_header_time("00") == 1620000000
        assert await client.treasury_balance() == 123456789012

    @pytest.mark.asyncio
    async def test_non_numeric_height(self):
        """Test a bad getblockcount result."""
        client, _ = make_client(FakeResponse({"result": "tall"}))

        with pytest.raises(LedgerError):
            await client.current_height()

    @pytest.mark.asyncio
    async def test_close(self):
        """Test closing the session."""
        client, session = make_client()

        await client.close()

        session.close.assert_awaited_once()
        assert client._session is None


class TestSessionSetup:
    """Test session and TLS setup."""

    def test_tls_context_only_when_enabled(self):
        """Test SSL context creation follows use_tls."""
        assert DcrdRPCClient(LedgerConfig(use_tls=False))._ssl_context is None

        with patch("govtally.ledger.rpc.ssl.create_default_context") as create_context:
            client = DcrdRPCClient(LedgerConfig(use_tls=True, verify_tls=False))

        create_context.assert_called_once_with(cafile=None)
        assert client._ssl_context is create_context.return_value
        assert client._ssl_context.check_hostname is False
