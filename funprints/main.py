from __future__ import annotations
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Path, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from funprints import products
from funprints.admin import router as admin_router
from funprints.config import Settings, get_settings
from funprints.database import close_db, create_document, ensure_indexes, get_db
from funprints.deps import get_notifier, get_order_service, get_postal_lookup
from funprints.errors import CheckoutValidationError, StorefrontError
from funprints.notifications import Notifier
from funprints.orders import OrderService
from funprints.payments import build_upi_link, build_whatsapp_link, upi_app_links
from funprints.postal import PostalLookup
from funprints.schemas import (
    PINCODE_PATTERN,
    BulkEnquiry,
    ContactMessage,
    Order,
    OrderReceipt,
    OrderRequest,
    PaymentProofIn,
)
from funprints.shipping import calculate_shipping

logger = logging.getLogger("funprints")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await ensure_indexes(await get_db())
    logger.info("Fun Prints API ready (database %s)", settings.DATABASE_NAME)
    yield
    close_db()


app = FastAPI(title="Fun Prints API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(admin_router)


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    body = {"detail": exc.detail}
    if isinstance(exc, CheckoutValidationError):
        body["errors"] = exc.errors
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=body)


@app.get("/")
async def root():
    return {"message": "Fun Prints Backend Running"}


@app.get("/test")
async def test(db: AsyncIOMotorDatabase = Depends(get_db), settings: Settings = Depends(get_settings)):
    try:
        colls = await db.list_collection_names()
        return {
            "backend": "✅ Running",
            "database": "✅ Available",
            "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
            "database_name": db.name or settings.DATABASE_NAME,
            "connection_status": "Connected",
            "collections": colls,
        }
    except Exception as e:
        return {"backend": "✅ Running", "database": "❌ Not Available", "error": str(e)[:80]}


@app.post("/seed")
async def seed(db: AsyncIOMotorDatabase = Depends(get_db)):
    count = await products.seed_catalogue(db)
    if count == 0:
        return {"seeded": False, "message": "Products already exist"}
    return {"seeded": True, "count": count}


# ------------------------- Catalogue -------------------------

@app.get("/api/products")
async def get_products(
    q: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await products.list_products(db, q=q, category=category)


@app.get("/api/products/{product_id}")
async def get_product(product_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await products.get_product(db, product_id)


# ------------------------- Checkout helpers -------------------------

class ShippingQuote(BaseModel):
    subtotal: float
    state: Optional[str] = None
    shipping_fee: int
    total: float


@app.get("/api/shipping", response_model=ShippingQuote)
async def shipping_quote(subtotal: float = Query(..., ge=0), state: Optional[str] = Query(None)):
    fee = calculate_shipping(subtotal, state)
    return ShippingQuote(subtotal=subtotal, state=state, shipping_fee=fee, total=subtotal + fee)


@app.get("/api/pincode/{pincode}")
async def pincode_lookup(
    pincode: str = Path(..., pattern=PINCODE_PATTERN),
    lookup: PostalLookup = Depends(get_postal_lookup),
):
    localities = await lookup.lookup(pincode)
    return {
        "pincode": pincode,
        "found": bool(localities),
        "localities": [
            {"name": loc.name, "district": loc.district, "state": loc.state} for loc in localities
        ],
    }


@app.get("/api/payment/upi")
async def upi_links(
    amount: float = Query(..., gt=0),
    order_code: Optional[str] = Query(None),
    name: Optional[str] = Query(None),
    mobile: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings),
):
    links = {
        "amount": amount,
        "upi_link": build_upi_link(settings.UPI_ID, settings.UPI_NAME, amount),
        "app_links": upi_app_links(settings.UPI_ID, settings.UPI_NAME, amount),
    }
    if order_code:
        links["whatsapp_link"] = build_whatsapp_link(
            settings.WHATSAPP_NUMBER, order_code, amount, name or "Customer", mobile or ""
        )
    return links


# ------------------------- Orders -------------------------

@app.post("/api/orders", response_model=OrderReceipt, status_code=201)
async def create_order(payload: OrderRequest, service: OrderService = Depends(get_order_service)):
    return await service.submit_order(payload)


@app.get("/api/orders/{order_code}", response_model=Order)
async def get_order(order_code: str, service: OrderService = Depends(get_order_service)):
    return await service.get_order(order_code)


@app.post("/api/orders/{order_code}/payment-proof")
async def upload_payment_proof(
    order_code: str,
    payload: PaymentProofIn,
    service: OrderService = Depends(get_order_service),
):
    order = await service.add_payment_proof(order_code, payload.screenshot_url)
    return {"success": True, "order_code": order.order_code, "proofs": len(order.payment_proofs)}


# ------------------------- Enquiries -------------------------

@app.post("/api/contact")
async def contact(payload: ContactMessage, notifier: Notifier = Depends(get_notifier)):
    await notifier.send_contact_message(payload)
    return {"success": True, "message": "Message sent successfully"}


@app.post("/api/bulk-enquiries", status_code=201)
async def bulk_enquiry(
    payload: BulkEnquiry,
    db: AsyncIOMotorDatabase = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    saved = await create_document(db, "bulk_enquiry", payload.model_dump())
    try:
        await notifier.send_bulk_enquiry_alert(payload)
    except StorefrontError as e:
        logger.error("Bulk enquiry %s saved but alert not sent: %s", saved.get("id"), e)
    return {"success": True, "id": saved.get("id")}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
