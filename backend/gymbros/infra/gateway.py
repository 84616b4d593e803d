"""HTTP adapters for the collaborators the discovery engine consumes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from gymbros.domain.discovery.exceptions import NetworkError
from gymbros.domain.discovery.schemas import (
    DebitReceipt,
    FeedFilters,
    InteractionReceipt,
    InteractionType,
    Profile,
)
from gymbros.settings import is_true, settings

_TYPE_ROUTES = {
    InteractionType.LIKE: "/gym-bros/like/{target_id}",
    InteractionType.DISLIKE: "/gym-bros/dislike/{target_id}",
}


def build_client(
    base_url: Optional[str] = None,
    *,
    token: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    headers = {"Accept": "application/json"}
    bearer = token if token is not None else settings.gateway_token
    if bearer:
        headers["Authorization"] = f"Bearer {bearer}"
    return httpx.AsyncClient(
        base_url=base_url or settings.gateway_base_url,
        headers=headers,
        timeout=settings.gateway_timeout_seconds,
        transport=transport,
    )


def _parse_profiles(payload: Any) -> list[Profile]:
    if isinstance(payload, dict):
        payload = payload.get("recommendations") or payload.get("profiles") or payload.get("items") or []
    if not isinstance(payload, list):
        return []
    return [Profile.model_validate(item) for item in payload if isinstance(item, dict)]


@dataclass
class HttpRecommendationSource:
    """Recommendation source backed by the GymBros REST API."""

    http: httpx.AsyncClient

    async def fetch_candidates(self, filters: Optional[FeedFilters], *, skip: int, limit: int) -> list[Profile]:
        params: dict[str, Any] = {"skip": skip, "limit": limit}
        if filters is not None:
            params.update(filters.to_query())
        try:
            response = await self.http.get("/gym-bros/profiles", params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NetworkError(during="fetch") from exc
        return _parse_profiles(response.json())

    async def record_interaction(
        self,
        actor_id: str,
        target_id: str,
        type: InteractionType,  # noqa: A002
        view_duration_ms: int,
        metadata: Optional[dict[str, Any]] = None,
    ) -> InteractionReceipt:
        body: dict[str, Any] = {"viewDuration": view_duration_ms, "metadata": metadata or {}}
        route = _TYPE_ROUTES.get(type)
        if route is not None:
            path = route.format(target_id=target_id)
        else:
            path = "/gym-bros/interactions"
            body.update({"targetId": target_id, "type": type.value})
        try:
            response = await self.http.post(path, json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NetworkError(during="record") from exc
        data = response.json() if response.content else {}
        return InteractionReceipt.model_validate(data if isinstance(data, dict) else {})


@dataclass
class HttpCurrencyLedger:
    """Points balance owned by the storefront; debits are never retried here."""

    http: httpx.AsyncClient

    async def get_balance(self) -> int:
        try:
            response = await self.http.get("/users/points")
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NetworkError(during="balance") from exc
        data = response.json()
        if isinstance(data, dict):
            data = data.get("points", data.get("balance", 0))
        return int(data or 0)

    async def debit(self, amount: int, *, reason: str) -> DebitReceipt:
        try:
            response = await self.http.post("/users/points/debit", json={"amount": amount, "reason": reason})
        except httpx.HTTPError as exc:
            raise NetworkError(during="debit") from exc
        if response.status_code in (400, 402, 409):
            data = response.json() if response.content else {}
            return DebitReceipt(success=False, balance=(data or {}).get("balance"))
        try:
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NetworkError(during="debit") from exc
        data = response.json() if response.content else {}
        return DebitReceipt.model_validate({"success": True, **(data or {})})


@dataclass
class HttpEntitlementSource:
    http: httpx.AsyncClient

    async def is_premium(self) -> bool:
        try:
            response = await self.http.get("/gym-bros/membership")
        except httpx.HTTPError as exc:
            raise NetworkError(during="entitlement") from exc
        if response.status_code == 404:
            return False
        try:
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NetworkError(during="entitlement") from exc
        data = response.json() if response.content else {}
        if not isinstance(data, dict):
            return False
        return is_true(data.get("hasActiveMembership", data.get("active")))
