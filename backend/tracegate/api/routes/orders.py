"""Orders Routes — thin HTTP surface over OrderService.

Invariants:
    - Routes never build error responses: failures are raised and left to the pipeline
    - The SKU of every placement is recorded on the request's DiagnosticContext

Design Decisions:
    - OrderService lives on app.state (built in create_app): one instance per app,
      tests inject their own inventory through create_app
"""

from fastapi import APIRouter, Depends, Request, status

from tracegate.api.pipeline import get_diagnostic_context
from tracegate.infrastructure.diagnostics import DiagnosticContext
from tracegate.schemas.order import OrderCreate, OrderResponse
from tracegate.services.orders import Order, OrderService

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


def _to_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.id, sku=order.sku, quantity=order.quantity, status=order.status,
    )


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=OrderResponse)
async def place_order(
    body: OrderCreate,
    service: OrderService = Depends(get_order_service),
    diagnostics: DiagnosticContext = Depends(get_diagnostic_context),
):
    diagnostics.enrich("sku", body.sku)
    order = await service.place(body.sku, body.quantity)
    return _to_response(order)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int, service: OrderService = Depends(get_order_service),
):
    return _to_response(service.get(order_id))
