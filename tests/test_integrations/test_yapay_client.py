"""
Yapay支付网关客户端测试
"""

import json
import httpx
import pytest
from decimal import Decimal
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from app.core.exceptions import ExternalServiceError, ReasonCode
from app.integrations import yapay_client
from app.integrations.yapay_client import (
    YapayClient, parse_token_response, extract_charge_status, get_yapay_client
)
from app.models.payment_link import ChargeRequest
from app.services.common_cache import SimpleCache, provider_token_cache

TOKEN_XML = (
    "<authorization>"
    "<access_token>tok-123</access_token>"
    "<access_token_expiration>2030-01-01T00:00:00</access_token_expiration>"
    "</authorization>"
)


class TestParsing:
    """响应解析"""

    def test_parse_token_response(self):
        token = parse_token_response(TOKEN_XML)
        assert token["access_token"] == "tok-123"
        assert token["expires_at"] == datetime(2030, 1, 1, tzinfo=timezone.utc)

    def test_parse_token_without_expiration(self):
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        token = parse_token_response("<access_token>abc</access_token>", now=now)
        assert token["expires_at"] == now + timedelta(hours=24)

    def test_parse_token_missing(self):
        with pytest.raises(ExternalServiceError):
            parse_token_response("<error>invalid</error>")

    @pytest.mark.parametrize("payload, expected", [
        ({"status": "approved"}, "approved"),
        ({"data": [{"status": "waiting_payment"}]}, "waiting_payment"),
        ([{"transaction": {"status_name": "Em Análise"}}], "Em Análise"),
        ({"status_name": "canceled"}, "canceled"),
    ])
    def test_extract_charge_status(self, payload, expected):
        assert extract_charge_status(payload) == expected

    def test_extract_charge_status_empty_list(self):
        with pytest.raises(ExternalServiceError):
            extract_charge_status({"data": []})


@pytest.mark.asyncio
class TestYapayClient:
    """YapayClient测试类"""

    def _client(self, handler, token_cache=None) -> YapayClient:
        return YapayClient(
            api_url="https://gateway.test",
            consumer_key="key",
            consumer_secret="secret",
            code="code",
            timeout=5,
            token_cache=token_cache,
            transport=httpx.MockTransport(handler)
        )

    async def test_access_token_is_reused(self):
        """测试令牌未过期时不重复申请"""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            return httpx.Response(200, text=TOKEN_XML)

        client = self._client(handler)
        first = await client.get_access_token()
        second = await client.get_access_token()

        assert first == second == "tok-123"
        assert calls == ["/api/v1/authorizations/access_token"]

    async def test_access_token_from_shared_cache(self):
        cache = AsyncMock(spec=SimpleCache)
        cache.get.return_value = {
            "access_token": "cached-tok",
            "expires_at": (datetime.now(timezone.utc) + timedelta(hours=2)).isoformat()
        }

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("不应请求网关")

        client = self._client(handler, token_cache=cache)

        assert await client.get_access_token() == "cached-tok"

    async def test_access_token_stored_in_cache(self):
        cache = AsyncMock(spec=SimpleCache)
        cache.get.return_value = None

        client = self._client(lambda request: httpx.Response(200, text=TOKEN_XML), token_cache=cache)
        await client.get_access_token()

        key, value = cache.set.call_args.args
        assert key == "access_token"
        assert value["access_token"] == "tok-123"
        assert cache.set.call_args.kwargs["ttl"] > 0

    async def test_create_charge_sends_token_header(self):
        """测试创建收款时携带访问令牌"""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("access_token"):
                return httpx.Response(200, text=TOKEN_XML)
            seen["authorization"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={
                "id": 9,
                "order_number": "ORD-1",
                "value": "170.00",
                "payment_link": "https://pay.example.com/ORD-1",
                "status": True
            })

        client = self._client(handler)
        charge = await client.create_charge(ChargeRequest(
            order_number="ORD-1",
            code="100",
            value="170.00",
            description="Curso",
            max_split_transaction="12",
            available_payment_methods="27"
        ))

        assert charge.value == Decimal("170.00")
        assert charge.status == 1
        assert seen["authorization"] == "Token token=tok-123, type=access_token"
        assert seen["body"]["available_payment_methods"] == "27"
        assert "customer_email" not in seen["body"]

    async def test_get_charge_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("access_token"):
                return httpx.Response(200, text=TOKEN_XML)
            assert request.url.params["order_number"] == "ORD-1"
            return httpx.Response(200, json={"data": [{"status": "approved"}]})

        client = self._client(handler)

        assert await client.get_charge_status("ORD-1") == "approved"

    async def test_http_error_becomes_provider_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("access_token"):
                return httpx.Response(200, text=TOKEN_XML)
            return httpx.Response(500, text="boom")

        client = self._client(handler)

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.get_charge_status("ORD-1")

        assert exc_info.value.reason_code == ReasonCode.PAYMENT_PROVIDER_ERROR

    async def test_timeout_becomes_provider_error(self):
        """测试网关超时转换为业务异常"""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = self._client(handler)

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.get_access_token()

        assert "超时" in exc_info.value.message


class TestSharedClient:
    """进程内共享客户端"""

    def test_get_yapay_client_is_shared(self, monkeypatch):
        monkeypatch.setattr(yapay_client, "_yapay_client", None)

        first = get_yapay_client()
        second = get_yapay_client()

        assert first is second
        assert first.token_cache is provider_token_cache

    @pytest.mark.asyncio
    async def test_token_reused_across_requests(self, monkeypatch):
        """测试没有Redis时，多次请求仍只申请一次令牌"""
        token_requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("access_token"):
                token_requests.append(request.url.path)
                return httpx.Response(200, text=TOKEN_XML)
            return httpx.Response(200, json={"status": "approved"})

        monkeypatch.setattr(yapay_client, "_yapay_client", None)
        monkeypatch.setattr(provider_token_cache, "redis_client", None)
        client = get_yapay_client()
        client.transport = httpx.MockTransport(handler)

        for _ in range(3):
            await get_yapay_client().get_charge_status("ORD-1")

        assert len(token_requests) == 1
