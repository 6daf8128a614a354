"""Unit tests for the remote procedure client"""

import httpx
import pytest
from unittest.mock import AsyncMock, patch
from village_bank.domain.exceptions import RemoteProcedureError
from village_bank.infrastructure.clients.rpc import RpcClient

BASE_URL = "https://backend.example.org"


def response(status_code: int, **kwargs) -> httpx.Response:
    request = httpx.Request("POST", f"{BASE_URL}/rest/v1/rpc/rpc_extend_grace")
    return httpx.Response(status_code, request=request, **kwargs)


@pytest.fixture
def rpc_client() -> RpcClient:
    return RpcClient(base_url=BASE_URL + "/", api_key="anon-key", timeout=2.0)


@patch("httpx.AsyncClient.post", new_callable=AsyncMock)
async def test_call_posts_named_procedure(mock_post: AsyncMock, rpc_client: RpcClient):
    mock_post.return_value = response(200, json={"ok": True})

    result = await rpc_client.call("rpc_extend_grace", {"p_loan_id": "loan-1", "p_new_grace_days": 7})

    assert result == {"ok": True}
    args, kwargs = mock_post.call_args
    assert args[0] == f"{BASE_URL}/rest/v1/rpc/rpc_extend_grace"
    assert kwargs["json"] == {"p_loan_id": "loan-1", "p_new_grace_days": 7}
    assert kwargs["headers"]["apikey"] == "anon-key"
    assert kwargs["headers"]["Authorization"] == "Bearer anon-key"


@patch("httpx.AsyncClient.post", new_callable=AsyncMock)
async def test_empty_body_returns_none(mock_post: AsyncMock, rpc_client: RpcClient):
    mock_post.return_value = response(204)

    assert await rpc_client.call("rpc_try_settle_waitlist", {}) is None


@patch("httpx.AsyncClient.post", new_callable=AsyncMock)
async def test_http_error_raises(mock_post: AsyncMock, rpc_client: RpcClient):
    mock_post.return_value = response(500, json={"message": "boom"})

    with pytest.raises(RemoteProcedureError, match="500"):
        await rpc_client.call("rpc_extend_grace", {})

    assert mock_post.await_count == 1


@patch("httpx.AsyncClient.post", new_callable=AsyncMock)
async def test_timeout_raises(mock_post: AsyncMock, rpc_client: RpcClient):
    mock_post.side_effect = httpx.ReadTimeout("timed out")

    with pytest.raises(RemoteProcedureError, match="timed out"):
        await rpc_client.call("rpc_extend_grace", {})


@patch("httpx.AsyncClient.post", new_callable=AsyncMock)
async def test_transport_error_raises(mock_post: AsyncMock, rpc_client: RpcClient):
    mock_post.side_effect = httpx.ConnectError("connection refused")

    with pytest.raises(RemoteProcedureError, match="unreachable"):
        await rpc_client.call("rpc_try_settle_waitlist", {})


@patch("httpx.AsyncClient.post", new_callable=AsyncMock)
async def test_invalid_json_raises(mock_post: AsyncMock, rpc_client: RpcClient):
    mock_post.return_value = response(200, content=b"not json")

    with pytest.raises(RemoteProcedureError, match="Invalid response"):
        await rpc_client.call("rpc_extend_grace", {})


def test_no_api_key_sends_no_auth_headers():
    headers = RpcClient(base_url=BASE_URL, api_key="")._headers()

    assert "apikey" not in headers
    assert "Authorization" not in headers
