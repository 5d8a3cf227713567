from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront.models import OrderStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class CreatePaymentIntentRequest(CamelModel):
    model_config = ConfigDict(extra="forbid")

    vinyl_id: str = Field(min_length=1)


class PaymentIntentResponse(CamelModel):
    client_secret: str
    order_id: str
    amount: int = Field(description="Amount in minor currency units (cents)")


class WebhookReceipt(BaseModel):
    received: bool = True


class VinylSummary(CamelModel):
    id: str
    name: str
    author_name: str
    image_url: Optional[str] = None


class OrderItemResponse(CamelModel):
    id: str
    vinyl_id: str
    quantity: int
    price_at_purchase: Decimal
    vinyl: VinylSummary


class OrderResponse(CamelModel):
    id: str
    status: OrderStatus
    total_amount: Decimal
    stripe_payment_intent_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemResponse]
