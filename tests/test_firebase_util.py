import threading
import time
from datetime import timedelta

import firebase_admin

import firebase_util
from conftest import NOW, cart_wise, product_wise


class TestCouponRepository:
    def test_create_assigns_id(self, repo, root_ref):
        coupon = repo.create(cart_wise())
        assert coupon.id
        stored = root_ref.child("coupons").child(coupon.id).get()
        assert stored["type"] == "cart-wise"
        assert "id" not in stored

    def test_find_by_id(self, repo):
        coupon = repo.create(product_wise("P9"))
        found = repo.find_by_id(coupon.id)
        assert found.model_dump() == coupon.model_dump()

    def test_find_by_id_missing_or_invalid_key(self, repo):
        assert repo.find_by_id("nope") is None
        assert repo.find_by_id("bad.key") is None

    def test_list_paginates_in_creation_order(self, repo):
        ids = [repo.create(cart_wise(threshold=i)).id for i in range(5)]
        assert [c.id for c in repo.list(page=1, limit=2)] == ids[:2]
        assert [c.id for c in repo.list(page=3, limit=2)] == ids[4:]
        assert repo.list(page=4, limit=2) == []

    def test_update_replaces_record(self, repo):
        coupon = repo.create(cart_wise(threshold=100))
        updated = repo.update(coupon.id, product_wise("P1"))
        assert updated.id == coupon.id
        assert repo.find_by_id(coupon.id).type == "product-wise"

    def test_update_missing(self, repo):
        assert repo.update("nope", cart_wise()) is None

    def test_delete(self, repo):
        coupon = repo.create(cart_wise())
        assert repo.delete(coupon.id) is True
        assert repo.find_by_id(coupon.id) is None
        assert repo.delete(coupon.id) is False

    def test_find_non_expired(self, repo):
        live = repo.create(cart_wise(expiry=NOW + timedelta(hours=1)))
        repo.create(cart_wise(expiry=NOW - timedelta(hours=1)))
        assert [c.id for c in repo.find_non_expired(NOW)] == [live.id]

    def test_malformed_records_skipped(self, repo, root_ref):
        root_ref.child("coupons").child("broken").set({"type": "cart-wise", "details": {}})
        coupon = repo.create(cart_wise())
        assert [c.id for c in repo.list()] == [coupon.id]

    def test_legacy_zero_limit_record_is_live(self, repo, root_ref):
        root_ref.child("coupons").child("legacy").set({
            "type": "bxgy",
            "details": {
                "buy_products": [{"product_id": "A", "quantity": 2}],
                "get_products": [{"product_id": "B", "quantity": 1}],
                "repition_limit": 0,
            },
            "expiryDate": "2099-01-01T00:00:00Z",
        })
        assert [c.id for c in repo.find_non_expired(NOW)] == ["legacy"]
        assert repo.find_by_id("legacy").details.repetition_limit is None


class TestInitFirebase:
    def test_concurrent_first_calls_initialize_once(self, monkeypatch):
        apps = {}
        calls = []

        def initialize_app(cred, options):
            calls.append(options)
            time.sleep(0.05)
            if apps:
                raise ValueError("The default Firebase app already exists.")
            apps["[DEFAULT]"] = object()

        monkeypatch.setattr(firebase_admin, "_apps", apps)
        monkeypatch.setattr(firebase_util.firebase_admin, "initialize_app", initialize_app)
        monkeypatch.setattr(firebase_util.credentials, "Certificate", lambda path: object())
        monkeypatch.setattr(firebase_util.db, "reference", lambda path: path)

        results = []
        threads = [threading.Thread(target=lambda: results.append(firebase_util.init_firebase())) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(calls) == 1
        assert results == ["/"] * 8
