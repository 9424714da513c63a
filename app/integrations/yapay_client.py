"""
Yapay支付网关客户端
负责访问令牌获取与缓存、创建收款链接、按订单号查询收款状态
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx
import structlog

from app.core.config import settings
from app.core.exceptions import ExternalServiceError
from app.models.payment_link import ChargeRequest, ChargeResponse
from app.services.common_cache import SimpleCache, provider_token_cache

logger = structlog.get_logger()

ACCESS_TOKEN_PATH = "/api/v1/authorizations/access_token"
CHARGES_PATH = "/api/v3/charges"
TOKEN_CACHE_KEY = "access_token"

_ACCESS_TOKEN_RE = re.compile(r"<access_token>([^<]+)</access_token>")
_ACCESS_TOKEN_EXPIRATION_RE = re.compile(r"<access_token_expiration[^>]*>([^<]+)</access_token_expiration>")


def parse_token_response(body: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """从XML响应中解析令牌和过期时间，缺少过期时间时按默认有效期计算"""
    now = now or datetime.now(timezone.utc)

    token_match = _ACCESS_TOKEN_RE.search(body or "")
    if not token_match:
        raise ExternalServiceError("支付网关响应中没有访问令牌")

    expires_at = None
    expiration_match = _ACCESS_TOKEN_EXPIRATION_RE.search(body)
    if expiration_match:
        try:
            expires_at = datetime.fromisoformat(expiration_match.group(1).strip())
        except ValueError:
            logger.warning("无法解析令牌过期时间", raw=expiration_match.group(1))
    if expires_at is None:
        expires_at = now + timedelta(hours=settings.yapay_default_token_ttl_hours)
    elif expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)

    return {"access_token": token_match.group(1).strip(), "expires_at": expires_at}


def extract_charge_status(payload: Any) -> str:
    """从查询响应中取出网关的原始状态文本"""
    if isinstance(payload, dict) and "data" in payload:
        payload = payload["data"]
    if isinstance(payload, list):
        if not payload:
            raise ExternalServiceError("支付网关未找到该订单")
        payload = payload[0]
    if not isinstance(payload, dict):
        raise ExternalServiceError("支付网关响应格式错误")

    status = payload.get("status")
    if status is None and isinstance(payload.get("transaction"), dict):
        status = payload["transaction"].get("status_name")
    if status is None:
        status = payload.get("status_name")
    if status is None:
        raise ExternalServiceError("支付网关响应中没有状态")
    return str(status)


class YapayClient:
    """Yapay支付网关客户端"""

    def __init__(
        self,
        api_url: Optional[str] = None,
        consumer_key: Optional[str] = None,
        consumer_secret: Optional[str] = None,
        code: Optional[str] = None,
        timeout: Optional[float] = None,
        token_cache: Optional[SimpleCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_url = (api_url or settings.yapay_api_url).rstrip("/")
        self.consumer_key = consumer_key if consumer_key is not None else settings.yapay_consumer_key
        self.consumer_secret = consumer_secret if consumer_secret is not None else settings.yapay_consumer_secret
        self.code = code if code is not None else settings.yapay_code
        self.timeout = timeout or settings.yapay_timeout_seconds
        self.token_cache = token_cache
        self.transport = transport
        self.refresh_margin = timedelta(seconds=settings.yapay_token_refresh_margin_seconds)

        self._access_token: Optional[str] = None
        self._expires_at: Optional[datetime] = None

    def _token_is_fresh(self, expires_at: Optional[datetime]) -> bool:
        return expires_at is not None and datetime.now(timezone.utc) < expires_at - self.refresh_margin

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """发送请求，超时和网络错误统一转换为ExternalServiceError"""
        try:
            async with httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                transport=self.transport
            ) as client:
                response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException:
            logger.error("支付网关请求超时", path=path, timeout=self.timeout)
            raise ExternalServiceError(f"支付网关请求超时 ({self.timeout}s)")
        except httpx.HTTPError as e:
            logger.error("支付网关请求失败", path=path, error=str(e))
            raise ExternalServiceError("支付网关请求失败")

        if response.status_code >= 400:
            logger.error("支付网关返回错误", path=path, status_code=response.status_code, body=response.text[:500])
            raise ExternalServiceError(f"支付网关返回错误: HTTP {response.status_code}")
        return response

    async def get_access_token(self) -> str:
        """获取访问令牌，未临近过期时复用缓存"""
        if self._access_token and self._token_is_fresh(self._expires_at):
            return self._access_token

        if self.token_cache:
            cached = await self.token_cache.get(TOKEN_CACHE_KEY)
            if cached:
                try:
                    expires_at = datetime.fromisoformat(cached["expires_at"])
                except (KeyError, TypeError, ValueError):
                    expires_at = None
                if self._token_is_fresh(expires_at):
                    self._access_token = cached["access_token"]
                    self._expires_at = expires_at
                    return self._access_token

        response = await self._request(
            "POST",
            ACCESS_TOKEN_PATH,
            json={
                "consumer_key": self.consumer_key,
                "consumer_secret": self.consumer_secret,
                "code": self.code
            },
            headers={"Accept": "application/xml"}
        )
        token = parse_token_response(response.text)
        self._access_token = token["access_token"]
        self._expires_at = token["expires_at"]
        logger.info("获取支付网关访问令牌成功", expires_at=self._expires_at.isoformat())

        if self.token_cache:
            ttl = int((self._expires_at - datetime.now(timezone.utc)).total_seconds())
            if ttl > 0:
                await self.token_cache.set(
                    TOKEN_CACHE_KEY,
                    {"access_token": self._access_token, "expires_at": self._expires_at.isoformat()},
                    ttl=ttl
                )
        return self._access_token

    async def _auth_headers(self) -> Dict[str, str]:
        token = await self.get_access_token()
        return {
            "Authorization": f"Token token={token}, type=access_token",
            "Accept": "application/json"
        }

    async def create_charge(self, request: ChargeRequest) -> ChargeResponse:
        """创建收款链接"""
        response = await self._request(
            "POST",
            CHARGES_PATH,
            json=request.model_dump(exclude_none=True),
            headers=await self._auth_headers()
        )
        try:
            charge = ChargeResponse(**response.json())
        except ValueError as e:
            logger.error("支付网关收款响应格式错误", order_number=request.order_number, error=str(e))
            raise ExternalServiceError("支付网关收款响应格式错误")

        logger.info("创建收款链接成功", order_number=charge.order_number, payment_link=charge.payment_link)
        return charge

    async def get_charge_status(self, order_number: str) -> str:
        """按订单号查询网关侧的原始状态文本"""
        response = await self._request(
            "GET",
            CHARGES_PATH,
            params={"order_number": order_number},
            headers=await self._auth_headers()
        )
        try:
            payload = response.json()
        except ValueError:
            raise ExternalServiceError("支付网关响应不是有效的JSON")

        status = extract_charge_status(payload)
        logger.debug("查询收款状态", order_number=order_number, status=status)
        return status


_yapay_client: Optional[YapayClient] = None


def get_yapay_client() -> YapayClient:
    """获取进程内共享的网关客户端，访问令牌在各请求和定时任务之间复用"""
    global _yapay_client
    if _yapay_client is None:
        _yapay_client = YapayClient(token_cache=provider_token_cache)
    return _yapay_client
