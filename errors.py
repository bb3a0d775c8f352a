class CouponError(Exception):
    """Base class for errors raised while managing or applying coupons."""


class CouponNotFound(CouponError):
    def __init__(self, coupon_id):
        super().__init__(f"Coupon {coupon_id} not found")
        self.coupon_id = coupon_id


class CouponExpired(CouponError):
    def __init__(self, coupon_id, expiry_date):
        super().__init__(f"Coupon {coupon_id} expired on {expiry_date.isoformat()}")
        self.coupon_id = coupon_id
        self.expiry_date = expiry_date


class InvalidCart(CouponError):
    pass


class InvalidCoupon(CouponError):
    pass
