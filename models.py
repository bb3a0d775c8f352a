from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class CouponType(str, Enum):
    CART_WISE = "cart-wise"
    PRODUCT_WISE = "product-wise"
    BXGY = "bxgy"


# 🧾 Coupon details, one shape per coupon type
class CartWiseDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    threshold: float = Field(ge=0)
    discount: float = Field(ge=0, le=100)  # percent


class ProductWiseDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    product_id: str
    discount: float = Field(ge=0, le=100)  # percent


class BxGyProduct(BaseModel):
    model_config = ConfigDict(extra="forbid")

    product_id: str
    quantity: int = Field(ge=1)


class BxGyReward(BxGyProduct):
    price: Optional[float] = Field(default=None, ge=0)  # recorded unit price


class BxGyDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    buy_products: List[BxGyProduct] = Field(min_length=1)
    get_products: List[BxGyReward] = Field(min_length=1)
    # None means unlimited, 0 is read as None for stored legacy coupons
    repetition_limit: Optional[int] = Field(
        default=None,
        ge=1,
        validation_alias=AliasChoices("repetition_limit", "repition_limit"),
    )

    @field_validator("repetition_limit", mode="before")
    @classmethod
    def zero_means_unlimited(cls, v):
        if v == 0:
            return None
        return v


class _CouponBase(BaseModel):
    id: Optional[str] = None
    expiryDate: datetime

    @field_validator("expiryDate")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class CartWiseCoupon(_CouponBase):
    type: Literal["cart-wise"]
    details: CartWiseDetails


class ProductWiseCoupon(_CouponBase):
    type: Literal["product-wise"]
    details: ProductWiseDetails


class BxGyCoupon(_CouponBase):
    type: Literal["bxgy"]
    details: BxGyDetails


Coupon = Annotated[
    Union[CartWiseCoupon, ProductWiseCoupon, BxGyCoupon],
    Field(discriminator="type"),
]

coupon_adapter = TypeAdapter(Coupon)


# 🛒 Cart
class CartItem(BaseModel):
    product_id: str
    price: float = Field(ge=0)
    quantity: int = Field(ge=1)


class Cart(BaseModel):
    items: List[CartItem]


class CartRequest(BaseModel):
    cart: Cart


# 🎯 Evaluation output
class FreeItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    quantity: int
    unit_price: float


class EvaluationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    coupon_id: Optional[str]
    type: CouponType
    discount: float
    free_items: List[FreeItem] = []


class UpdatedCartItem(CartItem):
    total_discount: float = 0


class UpdatedCart(BaseModel):
    items: List[UpdatedCartItem]
    total_price: float
    total_discount: float
    final_price: float


# 📦 Response envelope
class ApiResponse(BaseModel):
    statusCode: int
    data: Any = None
    message: str
    success: bool = True
