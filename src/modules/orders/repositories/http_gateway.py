"""HTTP implementation of the Order gateway.

Satisfies ``IOrderGateway`` over ``httpx.AsyncClient``.  Every call
forwards the active correlation ID as ``X-Request-ID``.  Cancelling the
awaiting task aborts the underlying HTTP request; timeouts are owned by
the transport (``ORDERS_API_TIMEOUT``).
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Type, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from modules.core.correlation import current_correlation_id
from modules.core.exceptions import GatewayError, MalformedResponse
from modules.orders.dtos import (
    BulkInvoiceResponse,
    DeliveryUpdatePayload,
    DeliveryUpdateResponse,
    InvoiceResponse,
    ListOrdersQuery,
    OrderListResponse,
    RejectionPayload,
    RejectionResponse,
    StatusUpdatePayload,
    StatusUpdateResponse,
)
from modules.orders.repositories.interfaces import IOrderGateway

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

ORDERS_PATH = "/api/admin/orders"


def _error_detail(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if body.get(key):
                return str(body[key])
    return None


class OrderHttpGateway(IOrderGateway):
    """Concrete Order gateway backed by the admin HTTP API."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls) -> OrderHttpGateway:
        from config import settings

        return cls(
            base_url=settings.ORDERS_API_BASE_URL,
            token=settings.ORDERS_API_TOKEN,
            timeout=settings.ORDERS_API_TIMEOUT,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> OrderHttpGateway:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def update_status(
        self, order_id: str, payload: StatusUpdatePayload
    ) -> StatusUpdateResponse:
        body = await self._request(
            "PATCH", f"{ORDERS_PATH}/{order_id}/status", json=payload.to_wire()
        )
        return self._parse(StatusUpdateResponse, body)

    async def reject(
        self, order_id: str, payload: RejectionPayload
    ) -> RejectionResponse:
        body = await self._request(
            "POST", f"{ORDERS_PATH}/{order_id}/reject", json=payload.to_wire()
        )
        return self._parse(RejectionResponse, body)

    async def send_invoice(self, order_id: str) -> InvoiceResponse:
        body = await self._request("POST", f"{ORDERS_PATH}/{order_id}/invoice")
        return self._parse(InvoiceResponse, body)

    async def send_invoices_bulk(
        self, order_ids: Sequence[str]
    ) -> BulkInvoiceResponse:
        # ``success: false`` here still carries per-order results.
        body = await self._request(
            "POST",
            f"{ORDERS_PATH}/invoices/bulk",
            json={"orderIds": list(order_ids)},
            allow_unsuccessful=True,
        )
        return self._parse(BulkInvoiceResponse, body)

    async def update_delivery(
        self, order_id: str, payload: DeliveryUpdatePayload
    ) -> DeliveryUpdateResponse:
        body = await self._request(
            "PATCH", f"{ORDERS_PATH}/{order_id}/delivery", json=payload.to_wire()
        )
        return self._parse(DeliveryUpdateResponse, body)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_orders(self, query: ListOrdersQuery) -> OrderListResponse:
        body = await self._request("GET", ORDERS_PATH, params=query.to_wire())
        return self._parse(OrderListResponse, body)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        allow_unsuccessful: bool = False,
    ) -> Dict[str, Any]:
        headers = {}
        cid = current_correlation_id()
        if cid:
            headers["X-Request-ID"] = cid
        log = logger.bind(method=method, path=path)

        try:
            response = await self._client.request(
                method, path, json=json, params=params, headers=headers
            )
        except httpx.HTTPError as exc:
            log.warning("gateway.transport_error", error=str(exc))
            raise GatewayError(f"Network error: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            detail = _error_detail(body) or response.reason_phrase
            log.warning(
                "gateway.request_failed",
                status_code=response.status_code,
                detail=detail,
            )
            raise GatewayError(detail, status_code=response.status_code)

        if not isinstance(body, dict):
            raise MalformedResponse(
                f"{method} {path} returned a non-JSON-object body.",
                status_code=response.status_code,
            )

        if body.get("success") is False and not allow_unsuccessful:
            detail = _error_detail(body) or "Request was not successful."
            log.warning("gateway.request_unsuccessful", detail=detail)
            raise GatewayError(detail, status_code=response.status_code)

        log.debug("gateway.request_succeeded", status_code=response.status_code)
        return body

    @staticmethod
    def _parse(model: Type[M], body: Dict[str, Any]) -> M:
        try:
            return model.model_validate(body)
        except ValidationError as exc:
            raise MalformedResponse(
                f"Unexpected {model.__name__} shape: {exc.error_count()} error(s)."
            ) from exc
