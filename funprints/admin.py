from __future__ import annotations
from typing import List

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from funprints import products
from funprints.database import get_db, get_documents
from funprints.deps import get_order_service, require_admin
from funprints.orders import OrderService
from funprints.schemas import Order, ProductUpdate, StatusUpdate, StockUpdate

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ------------------------- Orders -------------------------

@router.get("/orders", response_model=List[Order])
async def list_orders(service: OrderService = Depends(get_order_service)):
    return await service.list_orders()


@router.get("/orders/{order_code}", response_model=Order)
async def get_order(order_code: str, service: OrderService = Depends(get_order_service)):
    return await service.get_order(order_code)


@router.patch("/orders/{order_code}", response_model=Order)
async def update_order_status(
    order_code: str,
    payload: StatusUpdate,
    service: OrderService = Depends(get_order_service),
):
    return await service.set_order_status(
        order_code,
        payload.order_status,
        payload.payment_status,
        force=payload.force,
    )


# ------------------------- Products -------------------------

@router.get("/products")
async def list_products(db: AsyncIOMotorDatabase = Depends(get_db)):
    return await products.list_products_admin(db)


@router.patch("/products/{product_id}")
async def update_product(product_id: str, payload: ProductUpdate, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await products.update_product(db, product_id, payload)


@router.post("/products/{product_id}/toggle")
async def toggle_product(product_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await products.toggle_product(db, product_id)


@router.patch("/products/{product_id}/variants/{variant_id}/stock")
async def update_variant_stock(
    product_id: str,
    variant_id: str,
    payload: StockUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await products.set_variant_stock(db, product_id, variant_id, payload.stock)


# ------------------------- Enquiries -------------------------

@router.get("/bulk-enquiries")
async def list_bulk_enquiries(db: AsyncIOMotorDatabase = Depends(get_db)):
    return await get_documents(db, "bulk_enquiry", {}, limit=0, sort=[("created_at", DESCENDING)])
