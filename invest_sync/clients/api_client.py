"""
Upstream REST API client (fetch and mutation collaborator).

Wraps ``httpx.AsyncClient``.  Every upstream response uses the envelope::

    {"success": true, "data": ..., "message": "..."}

Collection fetches always return a list (never ``None``).  Any failure is
raised as :class:`UpstreamError` carrying a human-readable ``message``,
except transport failures that survive the retries and circuit-breaker
rejections, which keep their own type and message.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from invest_sync.core.config import settings
from invest_sync.core.exceptions import UpstreamError
from invest_sync.core.resilience import (
    CircuitBreaker,
    retry_with_backoff,
    upstream_circuit_breaker,
)

logger = logging.getLogger(__name__)


def _params(**values: Any) -> Dict[str, Any]:
    """Query parameters without the unset ones."""
    return {key: value for key, value in values.items() if value is not None}


class UpstreamApiClient:
    """
    Async client for the investment platform's REST API.

    Parameters
    ----------
    base_url : str
        API root, e.g. ``http://localhost:3001/api``.
    token : str, optional
        Bearer token sent on every request.
    transport : httpx.AsyncBaseTransport, optional
        Injected transport (``httpx.MockTransport`` in tests).
    circuit_breaker : CircuitBreaker
        Breaker shared by all calls of this client.
    max_retries : int
        Retries for transient transport errors.
    """

    def __init__(
        self,
        base_url: str = settings.UPSTREAM_API_URL,
        token: Optional[str] = settings.UPSTREAM_API_TOKEN,
        timeout: float = settings.HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: CircuitBreaker = upstream_circuit_breaker,
        max_retries: int = settings.HTTP_MAX_RETRIES,
    ):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=headers,
            transport=transport,
        )
        self._breaker = circuit_breaker
        self._send = retry_with_backoff(max_retries=max_retries)(self._send_once)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Transport ──

    async def _send_once(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return await self._client.request(method, path, **kwargs)

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        """Send through breaker and retries, then unwrap the envelope's ``data``."""
        kwargs: Dict[str, Any] = {}
        if params:
            kwargs["params"] = params
        if json is not None:
            kwargs["json"] = json

        response = await self._breaker.call(self._send, method, path, **kwargs)

        if response.status_code == 204 or not response.content:
            if response.is_success:
                return None
            raise UpstreamError(
                f"{method} {path} failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            raise UpstreamError(
                f"{method} {path} returned a non-JSON response",
                status_code=response.status_code,
            ) from None

        envelope = body if isinstance(body, dict) else {}
        if not response.is_success or envelope.get("success") is False:
            message = envelope.get("message") or envelope.get("error")
            if not isinstance(message, str) or not message:
                message = f"{method} {path} failed with HTTP {response.status_code}"
            logger.warning("Upstream error on %s %s: %s", method, path, message)
            raise UpstreamError(message, status_code=response.status_code)

        if "data" in envelope:
            return envelope["data"]
        return body

    async def _list(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Any]:
        data = await self._request("GET", path, params=params)
        if data is None:
            return []
        if not isinstance(data, list):
            raise UpstreamError(f"GET {path} did not return a list")
        return data

    # ── Fetch collaborators ──

    async def fetch_investments(self, filters: Optional[Dict[str, Any]] = None) -> List[Any]:
        return await self._list("/investments", _params(**(filters or {})))

    async def fetch_investor_investments(self, user_id: Optional[str] = None) -> List[Any]:
        return await self._list("/investor-investments", _params(userId=user_id))

    async def fetch_users(self, filters: Optional[Dict[str, Any]] = None) -> List[Any]:
        return await self._list("/users", _params(**(filters or {})))

    async def fetch_companies(self) -> List[Any]:
        return await self._list("/companies/sub")

    async def fetch_profit_loss_records(
        self,
        investment_id: Optional[str] = None,
        investor_investment_id: Optional[str] = None,
    ) -> List[Any]:
        return await self._list(
            "/profit-loss",
            _params(investmentId=investment_id, investorInvestmentId=investor_investment_id),
        )

    async def fetch_assets(self) -> List[Any]:
        return await self._list("/assets")

    # ── Mutation collaborators ──

    async def create_investment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/investments", json=data)

    async def update_investment(self, investment_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", f"/investments/{investment_id}", json=data)

    async def delete_investment(self, investment_id: str) -> None:
        await self._request("DELETE", f"/investments/{investment_id}")

    async def create_investor_investment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/investor-investments", json=data)

    async def withdraw_investor_investment(self, position_id: str) -> Optional[Dict[str, Any]]:
        return await self._request("PATCH", f"/investor-investments/{position_id}/withdraw")
