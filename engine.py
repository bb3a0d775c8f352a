"""Discount rule evaluation for cart-wise, product-wise and buy-x-get-y coupons.

``evaluate`` is the shared primitive: it looks at one coupon and one cart and
returns an ``EvaluationResult`` or ``None`` when the coupon does not apply.
``find_applicable`` runs it over every live coupon, ``apply_coupon`` folds a
single result into a new cart.

Free items granted by a bxgy coupon are valued at the cart price when the
product is already in the cart, else at the price recorded on the coupon,
else at 0.
"""

from datetime import datetime, timezone
from typing import List, Optional, Tuple

import structlog

from errors import CouponExpired, CouponNotFound
from models import (
    BxGyCoupon,
    BxGyDetails,
    Cart,
    CartItem,
    CartWiseCoupon,
    EvaluationResult,
    FreeItem,
    ProductWiseCoupon,
    UpdatedCart,
    UpdatedCartItem,
)
from validators import validate_cart

logger = structlog.get_logger(__name__)


def cart_total(cart: Cart) -> float:
    return sum(item.price * item.quantity for item in cart.items)


def _find_item(items, product_id):
    return next((item for item in items if item.product_id == product_id), None)


def repetitions(details: BxGyDetails, items: List[CartItem]) -> int:
    """How many times the buy condition is met, capped by the repetition limit."""
    counts = []
    for buy in details.buy_products:
        item = _find_item(items, buy.product_id)
        if item is None:
            return 0
        counts.append(item.quantity // buy.quantity)
    if details.repetition_limit is not None:
        counts.append(details.repetition_limit)
    return min(counts)


def evaluate(coupon, cart: Cart, cart_total_price: float, require_discount: bool = True) -> Optional[EvaluationResult]:
    """Decide whether ``coupon`` applies to ``cart`` and what it is worth.

    ``cart_total_price`` is passed in so callers scanning many coupons compute
    it once. A bxgy coupon whose free items are worth nothing is reported as
    not applicable unless ``require_discount`` is False.
    """
    if isinstance(coupon, CartWiseCoupon):
        return _evaluate_cart_wise(coupon, cart_total_price)
    if isinstance(coupon, ProductWiseCoupon):
        return _evaluate_product_wise(coupon, cart)
    if isinstance(coupon, BxGyCoupon):
        return _evaluate_bxgy(coupon, cart, require_discount)
    raise TypeError(f"Unsupported coupon: {type(coupon).__name__}")


def _evaluate_cart_wise(coupon: CartWiseCoupon, cart_total_price: float):
    details = coupon.details
    if cart_total_price < details.threshold:
        return None
    return EvaluationResult(
        coupon_id=coupon.id,
        type=coupon.type,
        discount=cart_total_price * details.discount / 100,
    )


def _evaluate_product_wise(coupon: ProductWiseCoupon, cart: Cart):
    details = coupon.details
    item = _find_item(cart.items, details.product_id)
    if item is None:
        return None
    return EvaluationResult(
        coupon_id=coupon.id,
        type=coupon.type,
        discount=item.price * item.quantity * details.discount / 100,
    )


def _evaluate_bxgy(coupon: BxGyCoupon, cart: Cart, require_discount: bool):
    details = coupon.details
    times = repetitions(details, cart.items)
    if times <= 0:
        return None

    free_items = []
    for get in details.get_products:
        in_cart = _find_item(cart.items, get.product_id)
        if in_cart is not None:
            unit_price = in_cart.price
        elif get.price is not None:
            unit_price = get.price
        else:
            unit_price = 0.0
        free_items.append(FreeItem(product_id=get.product_id, quantity=times * get.quantity, unit_price=unit_price))

    discount = sum(free.quantity * free.unit_price for free in free_items)
    if discount <= 0 and require_discount:
        return None
    return EvaluationResult(coupon_id=coupon.id, type=coupon.type, discount=discount, free_items=free_items)


def find_applicable(cart: Cart, repository, now: Optional[datetime] = None) -> List[EvaluationResult]:
    """Every live coupon that applies to ``cart``, in storage order."""
    now = now or datetime.now(timezone.utc)
    total = cart_total(cart)

    applicable = []
    for coupon in repository.find_non_expired(now):
        result = evaluate(coupon, cart, total)
        if result is not None:
            applicable.append(result)

    logger.info("Applicable coupons computed", cart_total=total, applicable=len(applicable))
    return applicable


def apply_coupon(coupon_id: str, cart: Cart, repository, now: Optional[datetime] = None) -> UpdatedCart:
    """Apply one coupon to ``cart`` and return the resulting cart.

    Raises InvalidCart for an empty cart, CouponNotFound when the id does not
    resolve and CouponExpired when the coupon's expiry is before ``now``.
    A coupon that does not apply leaves the cart unchanged.
    """
    validate_cart(cart)

    coupon = repository.find_by_id(coupon_id)
    if coupon is None:
        raise CouponNotFound(coupon_id)

    now = now or datetime.now(timezone.utc)
    if now > coupon.expiryDate:
        raise CouponExpired(coupon_id, coupon.expiryDate)

    total = cart_total(cart)
    items = [UpdatedCartItem(**item.model_dump()) for item in cart.items]

    result = evaluate(coupon, cart, total, require_discount=False)
    total_discount = 0.0
    if result is not None:
        items, total_discount = _fold(coupon, result, items)

    logger.info(
        "Coupon applied",
        coupon_id=coupon_id,
        coupon_type=coupon.type,
        applicable=result is not None,
        total_discount=total_discount,
    )
    return UpdatedCart(
        items=items,
        total_price=total,
        total_discount=total_discount,
        final_price=total - total_discount,
    )


def _fold(coupon, result: EvaluationResult, items: List[UpdatedCartItem]) -> Tuple[List[UpdatedCartItem], float]:
    if isinstance(coupon, CartWiseCoupon):
        return items, result.discount

    if isinstance(coupon, ProductWiseCoupon):
        matched = _find_item(items, coupon.details.product_id)
        folded = [
            item.model_copy(update={"total_discount": result.discount}) if item is matched else item
            for item in items
        ]
        return folded, result.discount

    if isinstance(coupon, BxGyCoupon):
        folded = list(items)
        discount = 0.0
        for free in result.free_items:
            value = free.quantity * free.unit_price
            existing = _find_item(folded, free.product_id)
            if existing is not None:
                folded[folded.index(existing)] = existing.model_copy(
                    update={
                        "quantity": existing.quantity + free.quantity,
                        "total_discount": existing.total_discount + value,
                    }
                )
            else:
                folded.append(
                    UpdatedCartItem(product_id=free.product_id, price=0, quantity=free.quantity, total_discount=value)
                )
            discount += value
        return folded, discount

    raise TypeError(f"Unsupported coupon: {type(coupon).__name__}")
