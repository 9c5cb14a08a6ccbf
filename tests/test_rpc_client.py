"""
Tests for the failover JSON-RPC client and response classification.
"""

import asyncio
import logging

import httpx
import pytest

from filbatch.clients.rpc_client import MALFORMED_RESPONSE, TIMEOUT_MESSAGE, RpcClient
from filbatch.config import Settings
from filbatch.engine.exceptions import NetworkError, ProtocolError, RpcTimeoutError, SchemaError
from filbatch.schemas.rpc import (
    RpcEndpointRole,
    RpcFailure,
    RpcMalformed,
    RpcSuccess,
    parse_rpc_response,
)

from test_mocks import (
    FALLBACK_URL,
    PRIMARY_URL,
    route_by_host,
    rpc_error,
    rpc_success,
)

PRIMARY_HOST = httpx.URL(PRIMARY_URL).host
FALLBACK_HOST = httpx.URL(FALLBACK_URL).host


def make_client(handler, timeout_ms: int = 10_000) -> RpcClient:
    return RpcClient(
        PRIMARY_URL,
        FALLBACK_URL,
        timeout_ms=timeout_ms,
        transport=httpx.MockTransport(handler),
    )


class TestParseRpcResponse:

    def test_success(self):
        parsed = parse_rpc_response({"jsonrpc": "2.0", "id": 1, "result": {"Height": 10}})
        assert isinstance(parsed, RpcSuccess)
        assert parsed.result == {"Height": 10}

    def test_null_result_is_success(self):
        parsed = parse_rpc_response({"jsonrpc": "2.0", "id": 1, "result": None})
        assert isinstance(parsed, RpcSuccess)
        assert parsed.result is None

    def test_error(self):
        parsed = parse_rpc_response({
            "jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "method not found"},
        })
        assert isinstance(parsed, RpcFailure)
        assert parsed.error.code == -32601
        assert parsed.error.message == "method not found"

    @pytest.mark.parametrize("body", [
        {"jsonrpc": "2.0", "id": 1},
        {"jsonrpc": "2.0", "id": 1, "result": 1, "error": {"code": 1, "message": "x"}},
        {"jsonrpc": "2.0", "id": 1, "error": {"message": "no code"}},
        {"jsonrpc": "1.0", "id": 1, "result": 1},
        [1, 2, 3],
        "ok",
        None,
    ])
    def test_malformed(self, body):
        assert isinstance(parse_rpc_response(body), RpcMalformed)


class TestRpcClientSuccess:

    @pytest.mark.asyncio
    async def test_primary_success_never_touches_fallback(self):
        calls = {}
        handler = route_by_host(lambda r: rpc_success(r, "12345"), calls=calls)

        async with make_client(handler) as rpc:
            result = await rpc.call("Filecoin.WalletBalance", ["f1abc"])

        assert result == "12345"
        assert list(calls) == [PRIMARY_HOST]
        body = calls[PRIMARY_HOST][0]
        assert body["jsonrpc"] == "2.0"
        assert body["method"] == "Filecoin.WalletBalance"
        assert body["params"] == ["f1abc"]

    @pytest.mark.asyncio
    async def test_null_result_returned(self):
        async with make_client(route_by_host(lambda r: rpc_success(r, None))) as rpc:
            assert await rpc.call("Filecoin.StateSearchMsg") is None

    @pytest.mark.asyncio
    async def test_request_ids_increase(self):
        calls = {}
        handler = route_by_host(lambda r: rpc_success(r, 1), calls=calls)

        async with make_client(handler) as rpc:
            for _ in range(3):
                await rpc.call("eth_chainId")

        assert [body["id"] for body in calls[PRIMARY_HOST]] == [1, 2, 3]

    def test_build_request(self):
        rpc = make_client(lambda r: rpc_success(r, 1))
        first = rpc.build_request("Filecoin.ChainHead")
        second = rpc.build_request("Filecoin.ChainHead", ["a"])
        assert first.params == []
        assert second.params == ["a"]
        assert second.id > first.id


class TestRpcClientFailover:

    @pytest.mark.asyncio
    async def test_http_error_fails_over(self, caplog):
        calls = {}
        handler = route_by_host(
            lambda r: httpx.Response(503, text="unavailable"),
            lambda r: rpc_success(r, "0x1"),
            calls=calls,
        )

        with caplog.at_level(logging.WARNING, logger="filbatch.clients.rpc_client"):
            async with make_client(handler) as rpc:
                assert await rpc.call("eth_gasPrice") == "0x1"

        assert len(calls[PRIMARY_HOST]) == 1
        assert len(calls[FALLBACK_HOST]) == 1
        # each attempt gets its own id
        assert calls[FALLBACK_HOST][0]["id"] > calls[PRIMARY_HOST][0]["id"]
        assert "RPC attempt 1 failed" in caplog.text

    @pytest.mark.asyncio
    async def test_connection_error_fails_over(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        handler = route_by_host(refuse, lambda r: rpc_success(r, "ok"))
        async with make_client(handler) as rpc:
            assert await rpc.call("Filecoin.ChainHead") == "ok"

    @pytest.mark.asyncio
    async def test_non_json_body_fails_over(self):
        handler = route_by_host(
            lambda r: httpx.Response(200, text="<html>gateway</html>"),
            lambda r: rpc_success(r, "ok"),
        )
        async with make_client(handler) as rpc:
            assert await rpc.call("Filecoin.ChainHead") == "ok"

    @pytest.mark.asyncio
    async def test_both_failing_raises_fallback_error(self):
        handler = route_by_host(
            lambda r: httpx.Response(503),
            lambda r: httpx.Response(502),
        )
        async with make_client(handler) as rpc:
            with pytest.raises(NetworkError) as exc_info:
                await rpc.call("Filecoin.ChainHead")

        assert "502" in str(exc_info.value)
        assert exc_info.value.endpoint == FALLBACK_URL
        assert exc_info.value.method == "Filecoin.ChainHead"

    @pytest.mark.asyncio
    async def test_both_timing_out_raises_timeout(self):
        async def slow(request):
            await asyncio.sleep(1)
            return rpc_success(request, "late")

        calls = {}
        async with make_client(route_by_host(slow, slow, calls=calls), timeout_ms=50) as rpc:
            with pytest.raises(RpcTimeoutError, match=TIMEOUT_MESSAGE):
                await rpc.call("Filecoin.ChainHead")

        assert len(calls[PRIMARY_HOST]) == 1
        assert len(calls[FALLBACK_HOST]) == 1

    @pytest.mark.asyncio
    async def test_primary_timeout_then_fallback_success(self):
        async def slow(request):
            await asyncio.sleep(1)
            return rpc_success(request, "late")

        async with make_client(route_by_host(slow, lambda r: rpc_success(r, "fast")), timeout_ms=50) as rpc:
            assert await rpc.call("Filecoin.ChainHead") == "fast"

    @pytest.mark.asyncio
    async def test_protocol_error_not_retried(self):
        calls = {}
        handler = route_by_host(
            lambda r: rpc_error(r, 1, "actor not found"),
            lambda r: rpc_success(r, "should not be used"),
            calls=calls,
        )
        async with make_client(handler) as rpc:
            with pytest.raises(ProtocolError) as exc_info:
                await rpc.call("Filecoin.WalletBalance", ["f1abc"])

        assert str(exc_info.value) == "actor not found"
        assert exc_info.value.code == 1
        assert FALLBACK_HOST not in calls

    @pytest.mark.asyncio
    async def test_malformed_response_not_retried(self):
        calls = {}
        handler = route_by_host(
            lambda r: httpx.Response(200, json={"jsonrpc": "2.0", "id": 1}),
            lambda r: rpc_success(r, "should not be used"),
            calls=calls,
        )
        async with make_client(handler) as rpc:
            with pytest.raises(SchemaError, match=MALFORMED_RESPONSE):
                await rpc.call("Filecoin.ChainHead")

        assert FALLBACK_HOST not in calls


class TestRpcClientConstruction:

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            RpcClient(PRIMARY_URL, FALLBACK_URL, timeout_ms=0)

    def test_endpoints_in_order(self):
        rpc = make_client(lambda r: rpc_success(r, 1))
        assert [e.role for e in rpc.endpoints] == [RpcEndpointRole.PRIMARY, RpcEndpointRole.FALLBACK]
        assert [e.url for e in rpc.endpoints] == [PRIMARY_URL, FALLBACK_URL]

    def test_from_settings(self):
        settings = Settings(rpc_primary_url=PRIMARY_URL, rpc_fallback_url=FALLBACK_URL, rpc_timeout_ms=2500)
        rpc = RpcClient.from_settings(settings)
        assert rpc.timeout == 2.5
        assert rpc.endpoints[1].url == FALLBACK_URL

    def test_http_client_uses_configured_timeout(self):
        rpc = RpcClient(PRIMARY_URL, FALLBACK_URL, timeout_ms=10_000)
        assert rpc._http.timeout == httpx.Timeout(10.0)

    def test_explicit_http_timeout_is_kept(self):
        rpc = RpcClient(PRIMARY_URL, FALLBACK_URL, timeout_ms=10_000, timeout=httpx.Timeout(3.0))
        assert rpc._http.timeout == httpx.Timeout(3.0)
