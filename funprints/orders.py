"""
Order submission and the admin status lifecycle.

An order is written as one MongoDB document (customer, address, lines,
customization and statuses embedded), so it is either fully visible or
not stored at all. Stock is reserved before the write and given back if
the write fails.

Order status::

    pending -> processing -> completed
    pending | processing -> cancelled

Payment status (independent)::

    pending -> verified | failed
"""
from __future__ import annotations
import asyncio
import logging
import secrets
import time
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional, Protocol, Union

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from funprints import inventory
from funprints.database import serialize_doc, utcnow
from funprints.errors import (
    ConcurrentUpdate,
    DuplicateOrderCode,
    IllegalStatusTransition,
    NotificationFailed,
    OrderCreationFailed,
    OrderNotFound,
)
from funprints.schemas import (
    Order,
    OrderReceipt,
    OrderRequest,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from funprints.shipping import calculate_shipping

logger = logging.getLogger("funprints.orders")

ORDERS = "order"

ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.VERIFIED, PaymentStatus.FAILED}),
    PaymentStatus.VERIFIED: frozenset(),
    PaymentStatus.FAILED: frozenset(),
}


class OrderNotifier(Protocol):
    async def send_order_confirmation(self, order: Order) -> None: ...

    async def send_admin_alert(self, order: Order) -> None: ...


def generate_order_code() -> str:
    """``FP`` + epoch milliseconds + 6 random hex digits."""
    return f"FP{int(time.time() * 1000)}{secrets.token_hex(3).upper()}"


def initial_payment_status(method: PaymentMethod) -> PaymentStatus:
    # COD is settled on delivery; UPI waits for the screenshot to be checked
    return PaymentStatus.VERIFIED if method == PaymentMethod.COD else PaymentStatus.PENDING


def can_transition(graph: Mapping[Enum, FrozenSet[Enum]], current: Enum, requested: Enum) -> bool:
    return requested == current or requested in graph[current]


class OrderService:
    def __init__(self, db: AsyncIOMotorDatabase, notifier: Optional[OrderNotifier] = None):
        self.db = db
        self.notifier = notifier

    async def submit_order(self, request: OrderRequest) -> OrderReceipt:
        order_code = request.order_code or generate_order_code()

        lines = []
        total_amount = 0.0
        for item in request.items:
            line_total = round(item.unit_price * item.quantity, 2)
            total_amount += line_total
            lines.append((item, line_total))
        total_amount = round(total_amount, 2)

        shipping_fee = calculate_shipping(total_amount, request.address.state)
        amount_due = round(total_amount + shipping_fee, 2)

        # Clients send the amount they displayed, shipping included
        if request.total is not None and abs(request.total - amount_due) > 0.005:
            logger.warning(
                "Order %s: client total %.2f ignored, recomputed %.2f",
                order_code, request.total, amount_due,
            )

        payment_status = initial_payment_status(request.payment_method)

        # One reservation per line, in line order
        reservations = await inventory.reserve(self.db, request.items)

        now = utcnow()
        doc = {
            "order_code": order_code,
            "customer": request.customer.model_dump(mode="json"),
            "address": request.address.model_dump(mode="json"),
            "items": [
                {
                    **item.model_dump(mode="json"),
                    "variant_id": str(reservation.variant_id),
                    "line_total": line_total,
                }
                for (item, line_total), reservation in zip(lines, reservations)
            ],
            "customization": request.customization.model_dump(mode="json") if request.customization else None,
            "payment_method": request.payment_method.value,
            "payment_status": payment_status.value,
            "order_status": OrderStatus.PENDING.value,
            "total_amount": total_amount,
            "shipping_fee": shipping_fee,
            "amount_due": amount_due,
            "payment_proofs": [],
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = await self.db[ORDERS].insert_one(doc)
        except DuplicateKeyError as e:
            await inventory.release(self.db, reservations)
            logger.warning("Order code %s already exists", order_code)
            raise DuplicateOrderCode() from e
        except PyMongoError as e:
            await inventory.release(self.db, reservations)
            logger.error("Persisting order %s failed: %s", order_code, e)
            raise OrderCreationFailed() from e

        doc["_id"] = result.inserted_id
        order = Order.model_validate(serialize_doc(doc))
        logger.info(
            "Order %s created: %d line(s), total %.2f, %s/%s",
            order_code, len(lines), total_amount,
            request.payment_method.value, payment_status.value,
        )

        await self._notify(order)

        return OrderReceipt(
            order_code=order.order_code,
            total_amount=order.total_amount,
            shipping_fee=order.shipping_fee,
            amount_due=order.amount_due,
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            order_status=order.order_status,
        )

    async def _notify(self, order: Order) -> None:
        if self.notifier is None:
            return
        results = await asyncio.gather(
            self.notifier.send_order_confirmation(order),
            self.notifier.send_admin_alert(order),
            return_exceptions=True,
        )
        for kind, result in zip(("customer confirmation", "admin alert"), results):
            if isinstance(result, Exception):
                failure = result if isinstance(result, NotificationFailed) else NotificationFailed(str(result))
                logger.error("Order %s: %s not sent: %s", order.order_code, kind, failure)

    async def get_order(self, order_code: str) -> Order:
        doc = await self.db[ORDERS].find_one({"order_code": order_code})
        if doc is None:
            raise OrderNotFound(order_code)
        return Order.model_validate(serialize_doc(doc))

    async def list_orders(self, limit: int = 500) -> List[Order]:
        cursor = self.db[ORDERS].find({}).sort("created_at", DESCENDING).limit(limit)
        orders = []
        async for doc in cursor:
            orders.append(Order.model_validate(serialize_doc(doc)))
        return orders

    async def set_order_status(
        self,
        order_code: str,
        order_status: Union[OrderStatus, str, None] = None,
        payment_status: Union[PaymentStatus, str, None] = None,
        *,
        force: bool = False,
    ) -> Order:
        """Move an order along its status graphs.

        ``force`` lets an admin correct a status outside the graph, e.g.
        reopening a cancelled order.
        """
        doc = await self.db[ORDERS].find_one({"order_code": order_code})
        if doc is None:
            raise OrderNotFound(order_code)

        current_order = OrderStatus(doc["order_status"])
        current_payment = PaymentStatus(doc["payment_status"])
        changes = {}

        if order_status is not None:
            order_status = OrderStatus(order_status)
            if not force and not can_transition(ORDER_TRANSITIONS, current_order, order_status):
                raise IllegalStatusTransition("order status", current_order.value, order_status.value)
            changes["order_status"] = order_status.value

        if payment_status is not None:
            payment_status = PaymentStatus(payment_status)
            if not force and not can_transition(PAYMENT_TRANSITIONS, current_payment, payment_status):
                raise IllegalStatusTransition("payment status", current_payment.value, payment_status.value)
            changes["payment_status"] = payment_status.value
            if payment_status == PaymentStatus.VERIFIED and doc.get("payment_proofs"):
                changes["payment_proofs"] = [{**p, "verified": True} for p in doc["payment_proofs"]]

        changes["updated_at"] = utcnow()
        updated = await self.db[ORDERS].find_one_and_update(
            {
                "_id": doc["_id"],
                "order_status": current_order.value,
                "payment_status": current_payment.value,
            },
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise ConcurrentUpdate()

        logger.info(
            "Order %s: %s/%s -> %s/%s%s",
            order_code, current_order.value, current_payment.value,
            updated["order_status"], updated["payment_status"],
            " (forced)" if force else "",
        )
        return Order.model_validate(serialize_doc(updated))

    async def add_payment_proof(self, order_code: str, screenshot_url: str) -> Order:
        updated = await self.db[ORDERS].find_one_and_update(
            {"order_code": order_code},
            {
                "$push": {"payment_proofs": {"screenshot_url": screenshot_url, "verified": False, "created_at": utcnow()}},
                "$set": {"updated_at": utcnow()},
            },
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise OrderNotFound(order_code)
        logger.info("Order %s: payment screenshot received", order_code)
        return Order.model_validate(serialize_doc(updated))
