from pydantic import BaseModel, Field, field_validator

from app.utils.phone import PHONE_PATTERN, normalize_phone


class ShippingAddress(BaseModel):
    address: str = Field(min_length=1)
    area: str = Field(min_length=1)
    city: str = Field(min_length=1)
    district: str | None = None
    note: str | None = None


class CheckoutRequest(BaseModel):
    phone_number: str = Field(pattern=PHONE_PATTERN)
    recipient_name: str = Field(min_length=1)
    shipping_address: ShippingAddress

    @field_validator("phone_number")
    @classmethod
    def national_phone(cls, value: str) -> str:
        return normalize_phone(value)


class CheckoutResponse(BaseModel):
    success: bool = True
    order_id: str


class CartItemAdd(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)


class CartLine(BaseModel):
    product_id: str
    name: str
    price: float
    quantity: int


class CartResponse(BaseModel):
    cart_id: str | None
    items: list[CartLine]
    subtotal: float
