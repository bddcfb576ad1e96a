"""
Variant stock reservation.

Stock is taken with a single conditional decrement per variant
(``stock >= qty`` in the filter), so concurrent checkouts cannot oversell.
A failed line gives back everything reserved before it. Driver errors
surface as ``OrderCreationFailed``.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from funprints.errors import InsufficientStock, OrderCreationFailed
from funprints.schemas import OrderLineIn

logger = logging.getLogger("funprints.inventory")

VARIANTS = "product_variant"


@dataclass(frozen=True)
class Reservation:
    line: OrderLineIn
    variant_id: Any
    remaining: int


async def reserve_line(db: AsyncIOMotorDatabase, line: OrderLineIn) -> Reservation:
    variant = await db[VARIANTS].find_one_and_update(
        {
            "product_id": line.product_id,
            "color": line.color,
            "size": line.size,
            "stock": {"$gte": line.quantity},
        },
        {"$inc": {"stock": -line.quantity}},
        return_document=ReturnDocument.AFTER,
    )
    if variant is None:
        raise InsufficientStock(line.product_id, line.color, line.size, line.quantity)

    if variant["stock"] <= 0:
        await db[VARIANTS].update_one(
            {"_id": variant["_id"], "stock": {"$lte": 0}},
            {"$set": {"is_available": False}},
        )
    return Reservation(line=line, variant_id=variant["_id"], remaining=variant["stock"])


async def reserve(db: AsyncIOMotorDatabase, lines: Iterable[OrderLineIn]) -> List[Reservation]:
    taken: List[Reservation] = []
    try:
        for line in lines:
            taken.append(await reserve_line(db, line))
    except InsufficientStock as e:
        logger.info(
            "Rejecting order line %s/%s/%s: %d requested",
            e.product_id, e.color, e.size, e.requested,
        )
        await release(db, taken)
        raise
    except PyMongoError as e:
        logger.error("Stock reservation failed after %d line(s): %s", len(taken), e)
        await release(db, taken)
        raise OrderCreationFailed() from e
    return taken


async def release(db: AsyncIOMotorDatabase, reservations: Iterable[Reservation]) -> None:
    for r in reservations:
        try:
            await db[VARIANTS].update_one(
                {"_id": r.variant_id},
                {"$inc": {"stock": r.line.quantity}, "$set": {"is_available": True}},
            )
        except Exception:
            # Stock stays low for this variant; admins can correct it by hand
            logger.exception("Could not give back %d of variant %s", r.line.quantity, r.variant_id)
