import os

import structlog
from dotenv import load_dotenv
from fastapi import Body, Depends, FastAPI, Header, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware

from engine import apply_coupon, find_applicable
from errors import CouponExpired, CouponNotFound, InvalidCart, InvalidCoupon
from firebase_util import CouponRepository, init_firebase
from logging_util import configure_logging
from models import ApiResponse, CartRequest
from validators import parse_coupon, validate_cart

load_dotenv()
configure_logging()

logger = structlog.get_logger(__name__)

app = FastAPI(title="Coupons API")

# 🔐 Allow frontend CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://127.0.0.1:5500").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_repository() -> CouponRepository:
    return CouponRepository(init_firebase())


# 🔐 Admin API key check
def check_admin(api_key: str = Header(..., alias="x-api-key")):
    admin_key = os.getenv("ADMIN_API_KEY")
    if not admin_key or api_key != admin_key:
        raise HTTPException(status_code=401, detail="Invalid API key")


def _parse(payload: dict):
    try:
        return parse_coupon(payload)
    except InvalidCoupon as e:
        raise HTTPException(status_code=400, detail=str(e))


# 🎯 1. CREATE COUPON
@app.post("/api/coupons", response_model=ApiResponse, status_code=201, dependencies=[Depends(check_admin)])
def create_coupon(payload: dict = Body(...), repo: CouponRepository = Depends(get_repository)):
    coupon = repo.create(_parse(payload))
    return ApiResponse(statusCode=201, data=coupon.model_dump(mode="json"), message="Coupon created successfully")


# 🎯 2. LIST COUPONS
@app.get("/api/coupons", response_model=ApiResponse)
def list_coupons(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    repo: CouponRepository = Depends(get_repository),
):
    coupons = repo.list(page=page, limit=limit)
    return ApiResponse(
        statusCode=200,
        data=[c.model_dump(mode="json") for c in coupons],
        message="Coupons retrieved successfully",
    )


# 🎯 3. GET COUPON
@app.get("/api/coupons/{coupon_id}", response_model=ApiResponse)
def get_coupon(coupon_id: str, repo: CouponRepository = Depends(get_repository)):
    coupon = repo.find_by_id(coupon_id)
    if coupon is None:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return ApiResponse(statusCode=200, data=coupon.model_dump(mode="json"), message="Coupon retrieved successfully")


# 🎯 4. UPDATE COUPON
@app.put("/api/coupons/{coupon_id}", response_model=ApiResponse, dependencies=[Depends(check_admin)])
def update_coupon(coupon_id: str, payload: dict = Body(...), repo: CouponRepository = Depends(get_repository)):
    coupon = repo.update(coupon_id, _parse(payload))
    if coupon is None:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return ApiResponse(statusCode=200, data=coupon.model_dump(mode="json"), message="Coupon updated successfully")


# 🎯 5. DELETE COUPON
@app.delete("/api/coupons/{coupon_id}", status_code=204, dependencies=[Depends(check_admin)])
def delete_coupon(coupon_id: str, repo: CouponRepository = Depends(get_repository)):
    if not repo.delete(coupon_id):
        raise HTTPException(status_code=404, detail="Coupon not found")
    return Response(status_code=204)


# 🎯 6. APPLICABLE COUPONS FOR A CART
@app.post("/api/applicable-coupons", response_model=ApiResponse)
def applicable_coupons(body: CartRequest, repo: CouponRepository = Depends(get_repository)):
    try:
        validate_cart(body.cart)
    except InvalidCart as e:
        raise HTTPException(status_code=400, detail=str(e))

    results = find_applicable(body.cart, repo)
    return ApiResponse(
        statusCode=200,
        data={
            "applicable_coupons": [
                r.model_dump(mode="json", include={"coupon_id", "type", "discount"}) for r in results
            ]
        },
        message="Applicable coupons retrieved successfully",
    )


# 🎯 7. APPLY COUPON TO A CART
@app.post("/api/apply-coupon/{coupon_id}", response_model=ApiResponse)
def apply_coupon_to_cart(coupon_id: str, body: CartRequest, repo: CouponRepository = Depends(get_repository)):
    try:
        updated_cart = apply_coupon(coupon_id, body.cart, repo)
    except CouponNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (CouponExpired, InvalidCart) as e:
        logger.info("Coupon rejected", coupon_id=coupon_id, reason=str(e))
        raise HTTPException(status_code=400, detail=str(e))

    return ApiResponse(
        statusCode=200,
        data={"updated_cart": updated_cart.model_dump(mode="json")},
        message="Coupon applied successfully",
    )
