import os
import threading
from datetime import datetime
from typing import List, Optional

import firebase_admin
import structlog
from dotenv import load_dotenv
from firebase_admin import credentials, db

from errors import InvalidCoupon
from validators import parse_coupon

# Load environment variables
load_dotenv()

# Path to Firebase service account JSON
FIREBASE_CRED_PATH = os.getenv("FIREBASE_CRED_JSON", "./firebase-adminsdk.json")
FIREBASE_DB_URL = os.getenv("FIREBASE_DB_URL")

logger = structlog.get_logger(__name__)

_init_lock = threading.Lock()


def init_firebase():
    """Initialize the Firebase app once and return the root DB reference."""
    with _init_lock:
        if not firebase_admin._apps:
            try:
                cred = credentials.Certificate(FIREBASE_CRED_PATH)
                firebase_admin.initialize_app(cred, {
                    'databaseURL': FIREBASE_DB_URL
                })
            except Exception as e:
                raise RuntimeError(f"🔥 Firebase initialization failed: {e}") from e
            logger.info("Firebase initialized", database_url=FIREBASE_DB_URL)
    return db.reference("/")


class CouponRepository:
    """Coupon records stored under ``/coupons/<id>``.

    Ids are Firebase push keys, so iterating the node yields coupons in
    creation order.
    """

    def __init__(self, root_ref):
        self.ref = root_ref.child("coupons")

    def create(self, coupon):
        new_ref = self.ref.push(self._to_record(coupon))
        logger.info("Coupon created", coupon_id=new_ref.key, coupon_type=coupon.type)
        return coupon.model_copy(update={"id": new_ref.key})

    def list(self, page: int = 1, limit: int = 20) -> List:
        start = limit * (page - 1)
        return self._all()[start:start + limit]

    def find_by_id(self, coupon_id: str):
        coupon_ref = self._child(coupon_id)
        if coupon_ref is None:
            return None
        data = coupon_ref.get()
        if not data:
            return None
        return self._to_coupon(coupon_id, data)

    def update(self, coupon_id: str, coupon):
        coupon_ref = self._child(coupon_id)
        if coupon_ref is None or not coupon_ref.get():
            return None
        coupon_ref.set(self._to_record(coupon))
        logger.info("Coupon updated", coupon_id=coupon_id, coupon_type=coupon.type)
        return coupon.model_copy(update={"id": coupon_id})

    def delete(self, coupon_id: str) -> bool:
        coupon_ref = self._child(coupon_id)
        if coupon_ref is None or not coupon_ref.get():
            return False
        coupon_ref.delete()
        logger.info("Coupon deleted", coupon_id=coupon_id)
        return True

    def find_non_expired(self, now: datetime) -> List:
        return [coupon for coupon in self._all() if coupon.expiryDate >= now]

    def _child(self, coupon_id: str) -> Optional[object]:
        try:
            return self.ref.child(coupon_id)
        except ValueError:
            # Keys containing ".", "#", "$", "[" or "]" can never exist
            return None

    def _all(self) -> List:
        records = self.ref.get() or {}
        coupons = (self._to_coupon(key, data) for key, data in records.items())
        return [coupon for coupon in coupons if coupon is not None]

    @staticmethod
    def _to_record(coupon) -> dict:
        return coupon.model_dump(mode="json", exclude={"id"}, exclude_none=True)

    @staticmethod
    def _to_coupon(coupon_id: str, data: dict):
        try:
            return parse_coupon({**data, "id": coupon_id})
        except InvalidCoupon as e:
            logger.warning("Skipping malformed coupon record", coupon_id=coupon_id, error=str(e))
            return None
