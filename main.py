import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from auth import create_access_token, require_role
from config import CORS_ORIGINS, LOG_LEVEL, PORT
from database import create_document, get_db
from payments import create_payment_intent, record_payment
from schemas import (
    User as UserSchema,
    Product as ProductSchema,
    Review as ReviewSchema,
    Coupon as CouponSchema,
    Payment as PaymentSchema,
    Role,
)
from utils import normalize_email, sanitize, to_obj_id, write_result

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    database.connect()
    yield
    database.close()


# App and CORS
app = FastAPI(title="Product Hunt API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"message": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    message = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse({"message": message}, status_code=422)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"message": "Internal Server Error"}, status_code=500)


def find_product(db: Database, product_id: str) -> Dict[str, Any]:
    product = db["product"].find_one({"_id": to_obj_id(product_id)})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


# Request/Response Models
class TokenRequest(BaseModel):
    email: EmailStr
    role: Optional[str] = None

class SaveUserRequest(BaseModel):
    name: Optional[str] = None
    image: Optional[str] = None

class SubscriptionUpdateRequest(BaseModel):
    isSubscribed: bool
    subscriptionDate: Optional[datetime] = None
    paymentVerified: bool
    status: Optional[str] = None

class RoleUpdateRequest(BaseModel):
    role: Role

class CreateProductRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    image: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = []
    externalLink: Optional[str] = None
    ownerName: Optional[str] = None
    ownerEmail: EmailStr
    ownerImage: Optional[str] = None
    timestamp: Optional[datetime] = None

class UpdateProductRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    image: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    externalLink: Optional[str] = None

class UserActionRequest(BaseModel):
    userEmail: EmailStr

class ReviewQueueUpdateRequest(BaseModel):
    status: str = Field(..., min_length=1)

class UpdateCouponRequest(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    discount: Optional[float] = Field(None, ge=0)
    expiryDate: Optional[str] = None
    description: Optional[str] = None

class PaymentIntentRequest(BaseModel):
    price: float = Field(..., gt=0)


# Auth Routes
@app.post("/jwt")
def issue_token(payload: TokenRequest):
    token = create_access_token(payload.model_dump(exclude_none=True))
    logger.info("Issued token for %s", payload.email)
    return {"token": token}

# Payment Routes
@app.post("/create-payment-intent")
def payment_intent(payload: PaymentIntentRequest):
    return {"clientSecret": create_payment_intent(payload.price)}

@app.post("/payments")
def save_payment(payload: PaymentSchema, db: Database = Depends(get_db)):
    return sanitize(record_payment(db, payload.model_dump()))

# Product Routes
@app.post("/products")
def create_product(payload: CreateProductRequest, db: Database = Depends(get_db)):
    owner = db["user"].find_one({"email": payload.ownerEmail})
    if not owner:
        raise HTTPException(status_code=409, detail="Owner not found")
    # Checked before the insert with no lock, two concurrent submissions can both pass.
    if not owner.get("isSubscribed") and db["product"].count_documents({"ownerEmail": payload.ownerEmail}) >= 1:
        logger.info("Product quota reached for %s", payload.ownerEmail)
        raise HTTPException(status_code=409, detail="Subscribe to add more than one product")
    data = payload.model_dump(exclude_none=True)
    product_doc = ProductSchema(**data).model_dump()
    product_doc = create_document(db, "product", product_doc)
    logger.info("Product %s created by %s", product_doc["_id"], payload.ownerEmail)
    return sanitize(product_doc)

@app.get("/all-product")
def all_products(db: Database = Depends(get_db)):
    return [sanitize(p) for p in db["product"].find()]

@app.get("/all-product-count")
def all_product_count(db: Database = Depends(get_db)):
    return {"count": db["product"].estimated_document_count()}

# size=0 means no limit, as with pymongo's limit(0).
@app.get("/product-pagination")
def product_pagination(page: int = Query(0, ge=0), size: int = Query(10, ge=0), db: Database = Depends(get_db)):
    cursor = db["product"].find().skip(page * size).limit(size)
    return [sanitize(p) for p in cursor]

@app.get("/product/search")
def search_products(tags: str = "", db: Database = Depends(get_db)):
    q = {"tags": {"$regex": re.escape(tags), "$options": "i"}}
    return [sanitize(p) for p in db["product"].find(q)]

@app.get("/products")
def list_products(db: Database = Depends(get_db)):
    return [sanitize(p) for p in db["product"].find().sort("timestamp", -1)]

@app.get("/specific-product/{email}")
def products_by_owner(email: str, db: Database = Depends(get_db)):
    return [sanitize(p) for p in db["product"].find({"ownerEmail": normalize_email(email)})]

@app.get("/get-product/{product_id}")
@app.get("/product-details/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    return sanitize(find_product(db, product_id))

@app.put("/product-update/{product_id}")
def update_product(product_id: str, payload: UpdateProductRequest, db: Database = Depends(get_db)):
    obj_id = to_obj_id(product_id)
    update_dict = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not update_dict:
        raise HTTPException(status_code=400, detail="No fields to update")
    res = db["product"].update_one({"_id": obj_id}, {"$set": update_dict})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    return sanitize(db["product"].find_one({"_id": obj_id}))

@app.patch("/products/vote/{product_id}")
def vote_product(product_id: str, payload: UserActionRequest, db: Database = Depends(get_db)):
    product = find_product(db, product_id)
    # votedUser only remembers the latest voter, so an earlier voter can vote again once someone else has.
    if product.get("votedUser") == payload.userEmail:
        logger.info("Repeat vote by %s on %s", payload.userEmail, product_id)
        raise HTTPException(status_code=409, detail="You already voted")
    db["product"].update_one(
        {"_id": product["_id"]},
        {"$inc": {"votes": 1}, "$set": {"votedUser": payload.userEmail}},
    )
    return sanitize(db["product"].find_one({"_id": product["_id"]}))

@app.patch("/products/report/{product_id}")
def report_product(product_id: str, payload: UserActionRequest, db: Database = Depends(get_db)):
    product = find_product(db, product_id)
    if product.get("reportedUser") == payload.userEmail:
        logger.info("Repeat report by %s on %s", payload.userEmail, product_id)
        raise HTTPException(status_code=409, detail="You already reported, please wait for moderator action")
    db["product"].update_one(
        {"_id": product["_id"]},
        {"$inc": {"report": 1}, "$set": {"reportedUser": payload.userEmail, "reportedStatus": "reported"}},
    )
    return sanitize(db["product"].find_one({"_id": product["_id"]}))

@app.delete("/product-data-delete/{product_id}")
def delete_product(product_id: str, db: Database = Depends(get_db)):
    res = db["product"].delete_one({"_id": to_obj_id(product_id)})
    return write_result(res)

# Moderation Routes
@app.patch("/product/reviewQueue-update/{product_id}")
def review_queue_update(product_id: str, payload: ReviewQueueUpdateRequest, db: Database = Depends(get_db)):
    obj_id = to_obj_id(product_id)
    if payload.status in ("Accepted", "Rejected"):
        update = {"status": payload.status}
    else:
        # Anything that is not a decision is a request to feature the product.
        update = {"isFeatured": True}
    res = db["product"].update_one({"_id": obj_id}, {"$set": update})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    logger.info("Product %s moderated: %s", product_id, update)
    return sanitize(db["product"].find_one({"_id": obj_id}))

@app.get("/product-review")
def review_queue(moderator=Depends(require_role("moderator")), db: Database = Depends(get_db)):
    products = [sanitize(p) for p in db["product"].find().sort("timestamp", -1)]
    return sorted(products, key=lambda p: p.get("status") != "pending")

@app.get("/product-reported")
def reported_products(moderator=Depends(require_role("moderator")), db: Database = Depends(get_db)):
    return [sanitize(p) for p in db["product"].find({"reportedStatus": "reported"})]

@app.get("/admin-state")
def admin_state(db: Database = Depends(get_db)):
    return {
        "products": db["product"].count_documents({}),
        "accepted": db["product"].count_documents({"status": "Accepted"}),
        "pending": db["product"].count_documents({"status": "pending"}),
        "reviews": db["review"].count_documents({}),
        "users": db["user"].count_documents({}),
    }

# User Routes
@app.post("/user/{email}")
def save_user(email: str, payload: Optional[SaveUserRequest] = None, db: Database = Depends(get_db)):
    email = normalize_email(email)
    existing = db["user"].find_one({"email": email})
    if existing:
        return sanitize(existing)
    user = UserSchema(email=email, **(payload.model_dump() if payload else {}))
    user_doc = create_document(db, "user", user.model_dump())
    logger.info("User %s created", email)
    return sanitize(user_doc)

@app.get("/all-user")
def all_users(admin=Depends(require_role("admin")), db: Database = Depends(get_db)):
    return [sanitize(u) for u in db["user"].find({"email": {"$ne": admin["email"]}})]

@app.get("/user/role/{email}")
def user_role(email: str, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": normalize_email(email)})
    return {"role": user.get("role") if user else None}

@app.get("/user/{email}")
def get_user(email: str, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": normalize_email(email)})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return sanitize(user)

@app.patch("/data-update/{user_id}")
def update_subscription(user_id: str, payload: SubscriptionUpdateRequest, db: Database = Depends(get_db)):
    obj_id = to_obj_id(user_id)
    res = db["user"].update_one({"_id": obj_id}, {"$set": payload.model_dump()})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="User not found")
    return sanitize(db["user"].find_one({"_id": obj_id}))

@app.patch("/user-update/{user_id}")
def update_user_role(user_id: str, payload: RoleUpdateRequest, db: Database = Depends(get_db)):
    obj_id = to_obj_id(user_id)
    res = db["user"].update_one({"_id": obj_id}, {"$set": {"role": payload.role}})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("User %s is now %s", user_id, payload.role)
    return sanitize(db["user"].find_one({"_id": obj_id}))

# Review Routes
@app.post("/review-data")
def save_review(payload: ReviewSchema, db: Database = Depends(get_db)):
    return sanitize(create_document(db, "review", payload.model_dump()))

@app.get("/reviews/{product_id}")
def product_reviews(product_id: str, db: Database = Depends(get_db)):
    return [sanitize(r) for r in db["review"].find({"productId": product_id})]

# Coupon Routes
@app.post("/coupons")
def create_coupon(payload: CouponSchema, db: Database = Depends(get_db)):
    return sanitize(create_document(db, "coupon", payload.model_dump()))

@app.get("/all-coupon")
def all_coupons(db: Database = Depends(get_db)):
    return [sanitize(c) for c in db["coupon"].find()]

@app.delete("/coupon-data-delete/{coupon_id}")
def delete_coupon(coupon_id: str, db: Database = Depends(get_db)):
    return write_result(db["coupon"].delete_one({"_id": to_obj_id(coupon_id)}))

@app.put("/coupon-update/{coupon_id}")
def update_coupon(coupon_id: str, payload: UpdateCouponRequest, db: Database = Depends(get_db)):
    obj_id = to_obj_id(coupon_id)
    update_dict = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not update_dict:
        raise HTTPException(status_code=400, detail="No fields to update")
    update_dict["updated_at"] = datetime.now(timezone.utc)
    res = db["coupon"].update_one({"_id": obj_id}, {"$set": update_dict})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return sanitize(db["coupon"].find_one({"_id": obj_id}))

# Utility endpoints
@app.get("/")
def root():
    return {"message": "Product Hunt API running"}

@app.get("/test")
def test_database():
    try:
        db = get_db()
        return {"backend": "ok", "database": "ok", "database_name": db.name, "collections": db.list_collection_names()}
    except Exception as e:
        return {"backend": "ok", "database": f"error: {e}"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
