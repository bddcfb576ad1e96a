"""
UPI handoff.

UPI payments cannot be confirmed programmatically. The customer pays from
their UPI app, then forwards the payment screenshot to the merchant on
WhatsApp; the order is recorded with payment status ``pending`` until an
admin verifies the screenshot.
"""
from __future__ import annotations
import logging
from typing import Awaitable, Callable, Dict, Optional
from urllib.parse import quote, urlencode

from pydantic import BaseModel

from funprints.cart import CartStore, KeyValueStorage
from funprints.errors import CheckoutValidationError
from funprints.schemas import (
    Address,
    CartItem,
    Customer,
    Customization,
    OrderLineIn,
    OrderReceipt,
    OrderRequest,
    PaymentMethod,
)

logger = logging.getLogger("funprints.payments")

PENDING_PAYMENT_KEY = "checkout-pending"
DEFAULT_NOTE = "Fun Prints Order"

OrderSubmitter = Callable[[OrderRequest], Awaitable[OrderReceipt]]

# App-specific schemes tried before the generic upi:// link
UPI_APP_SCHEMES = {
    "gpay": "tez://upi/pay",
    "phonepe": "phonepe://pay",
    "paytm": "paytmmp://pay",
}


def _format_amount(amount: float) -> str:
    return f"{amount:.2f}".rstrip("0").rstrip(".")


def _upi_query(upi_id: str, payee_name: str, amount: float, note: str) -> str:
    params = {
        "pa": upi_id,
        "pn": payee_name,
        "am": _format_amount(amount),
        "cu": "INR",
        "tn": note,
    }
    return urlencode(params, quote_via=quote, safe="@")


def build_upi_link(upi_id: str, payee_name: str, amount: float, note: str = DEFAULT_NOTE) -> str:
    return "upi://pay?" + _upi_query(upi_id, payee_name, amount, note)


def upi_app_links(upi_id: str, payee_name: str, amount: float, note: str = DEFAULT_NOTE) -> Dict[str, str]:
    query = _upi_query(upi_id, payee_name, amount, note)
    return {app: f"{scheme}?{query}" for app, scheme in UPI_APP_SCHEMES.items()}


def build_whatsapp_link(number: str, order_code: str, amount: float, customer_name: str, mobile: str) -> str:
    message = (
        "Hello Fun Prints,\n\n"
        "I have completed the payment.\n\n"
        f"Order ID: {order_code}\n"
        f"Amount: ₹{_format_amount(amount)}\n"
        f"Name: {customer_name}\n"
        f"Mobile: {mobile}\n\n"
        "Please find the payment screenshot attached."
    )
    digits = "".join(ch for ch in number if ch.isdigit())
    return f"https://wa.me/{digits}?text={quote(message)}"


class PendingPayment(BaseModel):
    """Checkout snapshot kept in client storage while the customer pays."""

    order_code: str
    items: list[CartItem]
    customer: Customer
    address: Address
    customization: Optional[Customization] = None
    subtotal: float
    shipping_fee: float
    total: float

    def to_order_request(self) -> OrderRequest:
        return OrderRequest(
            items=[OrderLineIn.from_cart_item(i) for i in self.items],
            customer=self.customer,
            address=self.address,
            payment_method=PaymentMethod.UPI,
            order_code=self.order_code,
            customization=self.customization,
            total=self.total,
        )


class UpiHandoff(BaseModel):
    order_code: str
    amount: float
    upi_link: str
    app_links: Dict[str, str]


class UpiConfirmation(BaseModel):
    receipt: OrderReceipt
    whatsapp_link: str


def stash_pending_payment(storage: KeyValueStorage, pending: PendingPayment) -> None:
    storage.set(PENDING_PAYMENT_KEY, pending.model_dump_json())


def load_pending_payment(storage: KeyValueStorage) -> Optional[PendingPayment]:
    raw = storage.get(PENDING_PAYMENT_KEY)
    if not raw:
        return None
    return PendingPayment.model_validate_json(raw)


class UpiPaymentFlow:
    """Second half of a UPI checkout, run once the customer says they paid."""

    def __init__(
        self,
        storage: KeyValueStorage,
        cart: CartStore,
        submit_order: OrderSubmitter,
        whatsapp_number: str,
    ):
        self.storage = storage
        self.cart = cart
        self.submit_order = submit_order
        self.whatsapp_number = whatsapp_number

    async def confirm(self) -> UpiConfirmation:
        pending = load_pending_payment(self.storage)
        if pending is None:
            raise CheckoutValidationError({"payment": "No pending UPI payment to confirm"})

        # OrderCreationFailed propagates with cart and stash intact
        receipt = await self.submit_order(pending.to_order_request())

        self.storage.delete(PENDING_PAYMENT_KEY)
        self.cart.clear_cart()
        logger.info("UPI order %s recorded, awaiting screenshot", receipt.order_code)
        return UpiConfirmation(
            receipt=receipt,
            whatsapp_link=build_whatsapp_link(
                self.whatsapp_number,
                receipt.order_code,
                pending.total,
                pending.customer.name,
                pending.customer.mobile,
            ),
        )
