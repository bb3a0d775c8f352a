from pydantic import ValidationError

from errors import InvalidCart, InvalidCoupon
from models import Cart, coupon_adapter

REQUIRED_DETAILS = {
    "cart-wise": "threshold and discount are required for cart-wise coupons",
    "product-wise": "product_id and discount are required for product-wise coupons",
    "bxgy": "buy_products and get_products are required for bxgy coupons",
}


def validate_cart(cart: Cart) -> None:
    # Item fields are enforced by the model, only emptiness is left here
    if not cart.items:
        raise InvalidCart(
            "Invalid input: cartItems must be a non-empty array of objects "
            "with price, product_id and quantity defined"
        )


def parse_coupon(payload: dict):
    """Turn a raw coupon mapping into the typed coupon matching its ``type``.

    Raises InvalidCoupon with the fields the declared type needs when the
    details do not fit.
    """
    try:
        return coupon_adapter.validate_python(payload)
    except ValidationError as e:
        coupon_type = payload.get("type") if isinstance(payload, dict) else None
        hint = REQUIRED_DETAILS.get(coupon_type) if isinstance(coupon_type, str) else None
        if hint is None:
            raise InvalidCoupon(
                "Invalid input: type must be one of " + ", ".join(REQUIRED_DETAILS)
            ) from e
        err = e.errors()[0]
        # Discriminated union locations start with the tag
        loc = [str(p) for p in err["loc"][1:]]
        detail = f"{'.'.join(loc)}: {err['msg']}"
        if loc and loc[0] == "details" and err["type"] == "missing":
            raise InvalidCoupon(f"Invalid input: {hint} ({detail})") from e
        raise InvalidCoupon(f"Invalid input: {detail}") from e
