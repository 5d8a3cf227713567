from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from storefront.auth import CurrentUser, get_current_user
from storefront.catalog import CatalogLookup
from storefront.config import Settings, get_settings
from storefront.database import get_db
from storefront.notifications import NotificationDispatcher, build_notifier
from storefront.order_store import OrderStore
from storefront.orders_service import OrderLifecycleService
from storefront.schemas import (
    CreatePaymentIntentRequest,
    OrderResponse,
    PaymentIntentResponse,
    WebhookReceipt,
)
from storefront.stripe_service import PaymentGateway

router = APIRouter(prefix="/orders", tags=["orders"])


def get_payment_gateway(settings: Settings = Depends(get_settings)) -> PaymentGateway:
    return PaymentGateway.from_settings(settings)


def get_notifier(settings: Settings = Depends(get_settings)) -> NotificationDispatcher:
    return build_notifier(settings)


def get_order_service(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> OrderLifecycleService:
    return OrderLifecycleService(
        store=OrderStore(db),
        catalog=CatalogLookup(db),
        gateway=gateway,
        notifier=notifier,
    )


@router.post("/create-payment-intent", status_code=201, response_model=PaymentIntentResponse)
def create_payment_intent_api(
    request: CreatePaymentIntentRequest,
    user: CurrentUser = Depends(get_current_user),
    service: OrderLifecycleService = Depends(get_order_service),
):
    return service.create_payment_intent(user.id, request.vinyl_id)


@router.post("/webhook", response_model=WebhookReceipt)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    service: OrderLifecycleService = Depends(get_order_service),
):
    # Signature verification needs the exact bytes Stripe sent
    payload = await request.body()
    await run_in_threadpool(service.handle_webhook, stripe_signature, payload)
    return WebhookReceipt(received=True)


@router.get("", response_model=List[OrderResponse])
def get_user_orders_api(
    user: CurrentUser = Depends(get_current_user),
    service: OrderLifecycleService = Depends(get_order_service),
):
    return service.get_user_orders(user.id)


@router.get("/{order_id}", response_model=OrderResponse)
def get_order_api(
    order_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: OrderLifecycleService = Depends(get_order_service),
):
    return service.get_order(order_id, user.id)
