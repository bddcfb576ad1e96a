from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument

from funprints.database import create_document, get_documents, serialize_doc, to_object_id, utcnow
from funprints.errors import ProductNotFound
from funprints.schemas import Product, ProductUpdate, ProductVariant

logger = logging.getLogger("funprints.products")

PRODUCTS = "product"
VARIANTS = "product_variant"

SIZES = ["S", "M", "L", "XL", "XXL"]

SEED_PRODUCTS: list[dict] = [
    {
        "name": "Classic Round Neck Tee",
        "category": "t-shirt",
        "description": "180 GSM combed cotton, ready for your print or logo.",
        "base_price": 399.0,
        "images": ["/images/products/round-neck-white-front.jpg"],
        "colors": {"white": 25, "black": 25, "navy": 15},
    },
    {
        "name": "Oversized Drop Shoulder Tee",
        "category": "t-shirt",
        "description": "240 GSM heavyweight oversized fit.",
        "base_price": 549.0,
        "images": ["/images/products/oversized-black-front.jpg"],
        "colors": {"black": 20, "beige": 10},
    },
    {
        "name": "Polo Collar Tee",
        "category": "polo",
        "description": "Pique knit polo, embroidered logo friendly.",
        "base_price": 649.0,
        "images": ["/images/products/polo-maroon-front.jpg"],
        "colors": {"maroon": 12, "white": 12},
    },
    {
        "name": "Pullover Hoodie",
        "category": "hoodie",
        "description": "320 GSM fleece hoodie with kangaroo pocket.",
        "base_price": 999.0,
        "images": ["/images/products/hoodie-grey-front.jpg"],
        "colors": {"grey": 8, "black": 8},
    },
]


def _with_variants(product: Dict[str, Any], variants: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {**product, "variants": [v for v in variants if v["product_id"] == product["id"]]}


async def seed_catalogue(db: AsyncIOMotorDatabase) -> int:
    if await db[PRODUCTS].count_documents({}) > 0:
        return 0
    for p in SEED_PRODUCTS:
        colors = p["colors"]
        product = Product(**{k: v for k, v in p.items() if k != "colors"})
        saved = await create_document(db, PRODUCTS, product.model_dump())
        for color, stock in colors.items():
            for size in SIZES:
                variant = ProductVariant(product_id=saved["id"], color=color, size=size, stock=stock)
                await create_document(db, VARIANTS, variant.model_dump())
    logger.info("Seeded %d products", len(SEED_PRODUCTS))
    return len(SEED_PRODUCTS)


async def list_products(
    db: AsyncIOMotorDatabase, q: Optional[str] = None, category: Optional[str] = None
) -> List[Dict[str, Any]]:
    filt: Dict[str, Any] = {"enabled": True}
    if q:
        filt["name"] = {"$regex": q, "$options": "i"}
    if category:
        filt["category"] = category
    products = await get_documents(db, PRODUCTS, filt, limit=200, sort=[("created_at", DESCENDING)])
    if not products:
        return []
    variants = await get_documents(
        db, VARIANTS,
        {"product_id": {"$in": [p["id"] for p in products]}, "is_available": True},
        limit=0,
    )
    return [_with_variants(p, variants) for p in products]


async def get_product(db: AsyncIOMotorDatabase, product_id: str, include_disabled: bool = False) -> Dict[str, Any]:
    oid = to_object_id(product_id)
    filt: Dict[str, Any] = {"_id": oid}
    if not include_disabled:
        filt["enabled"] = True
    doc = await db[PRODUCTS].find_one(filt) if oid else None
    if doc is None:
        raise ProductNotFound()
    variant_filter: Dict[str, Any] = {"product_id": product_id}
    if not include_disabled:
        variant_filter["is_available"] = True
    variants = await get_documents(db, VARIANTS, variant_filter, limit=0)
    return _with_variants(serialize_doc(doc), variants)


async def list_products_admin(db: AsyncIOMotorDatabase) -> List[Dict[str, Any]]:
    products = await get_documents(db, PRODUCTS, {}, limit=0, sort=[("created_at", DESCENDING)])
    if not products:
        return []
    variants = await get_documents(db, VARIANTS, {"product_id": {"$in": [p["id"] for p in products]}}, limit=0)
    return [_with_variants(p, variants) for p in products]


async def update_product(db: AsyncIOMotorDatabase, product_id: str, changes: ProductUpdate) -> Dict[str, Any]:
    oid = to_object_id(product_id)
    updates = changes.model_dump(exclude_unset=True)
    updates["updated_at"] = utcnow()
    doc = None
    if oid:
        doc = await db[PRODUCTS].find_one_and_update(
            {"_id": oid}, {"$set": updates}, return_document=ReturnDocument.AFTER
        )
    if doc is None:
        raise ProductNotFound()
    return serialize_doc(doc)


async def toggle_product(db: AsyncIOMotorDatabase, product_id: str) -> Dict[str, Any]:
    oid = to_object_id(product_id)
    current = await db[PRODUCTS].find_one({"_id": oid}) if oid else None
    if current is None:
        raise ProductNotFound()
    enabled = not current.get("enabled", True)
    doc = await db[PRODUCTS].find_one_and_update(
        {"_id": oid},
        {"$set": {"enabled": enabled, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    logger.info("Product %s %s", product_id, "enabled" if enabled else "disabled")
    return serialize_doc(doc)


async def set_variant_stock(db: AsyncIOMotorDatabase, product_id: str, variant_id: str, stock: int) -> Dict[str, Any]:
    oid = to_object_id(variant_id)
    stock = max(0, int(stock))
    doc = None
    if oid:
        doc = await db[VARIANTS].find_one_and_update(
            {"_id": oid, "product_id": product_id},
            {"$set": {"stock": stock, "is_available": stock > 0, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
    if doc is None:
        raise ProductNotFound("Variant not found")
    logger.info("Variant %s of %s stock set to %d", variant_id, product_id, stock)
    return serialize_doc(doc)
