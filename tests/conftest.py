import copy
import itertools
from datetime import datetime, timedelta, timezone

import pytest

from firebase_util import CouponRepository
from validators import parse_coupon

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeReference:
    """In-memory stand-in for a firebase_admin.db.Reference."""

    _keys = itertools.count(1)

    def __init__(self, store=None, path=()):
        self._store = store if store is not None else {}
        self._path = path
        self.key = path[-1] if path else None

    def child(self, path):
        if any(c in path for c in ".#$[]"):
            raise ValueError(f"Invalid path argument: {path}")
        return FakeReference(self._store, self._path + tuple(p for p in path.split("/") if p))

    def get(self):
        node = self._store
        for part in self._path:
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node) if node != {} else None

    def set(self, value):
        node = self._store
        for part in self._path[:-1]:
            node = node.setdefault(part, {})
        node[self._path[-1]] = copy.deepcopy(value)

    def push(self, value):
        ref = self.child(f"-coupon{next(self._keys):06d}")
        ref.set(value)
        return ref

    def delete(self):
        node = self._store
        for part in self._path[:-1]:
            node = node.get(part, {})
        node.pop(self._path[-1], None)


@pytest.fixture
def root_ref():
    return FakeReference()


@pytest.fixture
def repo(root_ref):
    return CouponRepository(root_ref)


def cart_wise(threshold=100, discount=10, expiry=NOW + timedelta(days=30)):
    return parse_coupon({
        "type": "cart-wise",
        "details": {"threshold": threshold, "discount": discount},
        "expiryDate": expiry.isoformat(),
    })


def product_wise(product_id="P1", discount=20, expiry=NOW + timedelta(days=30)):
    return parse_coupon({
        "type": "product-wise",
        "details": {"product_id": product_id, "discount": discount},
        "expiryDate": expiry.isoformat(),
    })


def bxgy(buy, get, repetition_limit=None, expiry=NOW + timedelta(days=30)):
    details = {"buy_products": buy, "get_products": get}
    if repetition_limit is not None:
        details["repetition_limit"] = repetition_limit
    return parse_coupon({"type": "bxgy", "details": details, "expiryDate": expiry.isoformat()})
