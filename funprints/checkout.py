"""
Checkout flow controller.

Two steps, address entry then payment selection. Moving forward is gated
by field validation; moving back keeps everything entered. The address
part auto-fills state, district and city from the PIN code:

* no match, or the lookup fails: the fields stay empty and editable
* one post office: all three are filled and locked
* several post offices: state and district are filled, the customer picks
  the city from the offered localities
"""
from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Dict, List, Optional, Union

from funprints.cart import CartStore, KeyValueStorage
from funprints.errors import CheckoutValidationError, LookupUnavailable
from funprints.orders import generate_order_code
from funprints.payments import (
    OrderSubmitter,
    PendingPayment,
    UpiHandoff,
    build_upi_link,
    stash_pending_payment,
    upi_app_links,
)
from funprints.postal import PostalLookup
from funprints.schemas import (
    EMAIL_PATTERN,
    MOBILE_PATTERN,
    PINCODE_PATTERN,
    Address,
    Customer,
    Customization,
    OrderLineIn,
    OrderReceipt,
    OrderRequest,
    PaymentMethod,
)
from funprints.shipping import calculate_shipping

logger = logging.getLogger("funprints.checkout")

MAX_LOGO_BYTES = 10 * 1024 * 1024

AUTOFILL_FIELDS = ("state", "district", "city")
ADDRESS_TYPES = ("home", "work")

_EMAIL_RE = re.compile(EMAIL_PATTERN)
_MOBILE_RE = re.compile(MOBILE_PATTERN)
_PINCODE_RE = re.compile(PINCODE_PATTERN)


class Step(str, Enum):
    ADDRESS_ENTRY = "address_entry"
    PAYMENT_SELECTION = "payment_selection"


class AutoFillStatus(str, Enum):
    IDLE = "idle"
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class CheckoutForm:
    name: str = ""
    email: str = ""
    mobile: str = ""
    pincode: str = ""
    state: str = ""
    district: str = ""
    city: str = ""
    building_line: str = ""
    landmark: str = ""
    address_type: str = "home"


@dataclass
class AutoFill:
    status: AutoFillStatus = AutoFillStatus.IDLE
    localities: List[str] = field(default_factory=list)
    locked: bool = False

    @property
    def failed(self) -> bool:
        return self.status in (AutoFillStatus.NOT_FOUND, AutoFillStatus.ERROR)


@dataclass(frozen=True)
class LogoAttachment:
    filename: str
    content_type: str
    size: int
    ref: Optional[str] = None


def validate_form(form: CheckoutForm) -> Dict[str, str]:
    """Return one message per invalid field; empty when the form is complete."""
    errors: Dict[str, str] = {}

    if not form.name.strip():
        errors["name"] = "Name is required"

    if not form.email.strip():
        errors["email"] = "Email is required"
    elif not _EMAIL_RE.match(form.email.strip()):
        errors["email"] = "Invalid email format"

    if not form.mobile.strip():
        errors["mobile"] = "Mobile number is required"
    elif not _MOBILE_RE.match(form.mobile.strip()):
        errors["mobile"] = "Mobile number must be 10 digits"

    if not form.pincode.strip():
        errors["pincode"] = "PIN code is required"
    elif not _PINCODE_RE.match(form.pincode.strip()):
        errors["pincode"] = "PIN code must be 6 digits"

    for name, label in (
        ("state", "State"),
        ("district", "District"),
        ("city", "City / Area"),
        ("building_line", "Building / Street"),
    ):
        if not getattr(form, name).strip():
            errors[name] = f"{label} is required"

    if form.address_type not in ADDRESS_TYPES:
        errors["address_type"] = "Address type must be home or work"

    return errors


def validate_logo(content_type: str, size: int) -> Optional[str]:
    if not (content_type or "").startswith("image/"):
        return "Please upload an image file (PNG, JPG, SVG)"
    if size > MAX_LOGO_BYTES:
        return "File size must be less than 10MB"
    return None


class CheckoutController:
    def __init__(
        self,
        cart: CartStore,
        lookup: PostalLookup,
        storage: KeyValueStorage,
        submit_order: OrderSubmitter,
        upi_id: str = "funprints@upi",
        upi_name: str = "Fun Prints",
    ):
        self.cart = cart
        self.lookup = lookup
        self.storage = storage
        self.submit_order = submit_order
        self.upi_id = upi_id
        self.upi_name = upi_name

        self.step = Step.ADDRESS_ENTRY
        self.form = CheckoutForm()
        self.autofill = AutoFill()
        self.errors: Dict[str, str] = {}
        self.payment_method = PaymentMethod.COD
        self.logo: Optional[LogoAttachment] = None

    # -- address entry --------------------------------------------------

    def update(self, **values: str) -> None:
        known = {f.name for f in fields(CheckoutForm)}
        for name, value in values.items():
            if name not in known:
                raise TypeError(f"Unknown checkout field: {name}")
            if name == "pincode":
                raise TypeError("Use set_pincode() to change the PIN code")
            if self.autofill.locked and name in AUTOFILL_FIELDS:
                raise CheckoutValidationError({name: "Auto-filled from PIN code"})
            setattr(self.form, name, value)
            self.errors.pop(name, None)

    def _clear_derived(self) -> None:
        for name in AUTOFILL_FIELDS:
            setattr(self.form, name, "")

    async def set_pincode(self, value: str) -> None:
        pincode = re.sub(r"\D", "", value or "")[:6]
        had_autofill = self.autofill.status == AutoFillStatus.SUCCESS
        self.form.pincode = pincode
        self.errors.pop("pincode", None)
        self.autofill = AutoFill()

        if len(pincode) < 6:
            if had_autofill or not pincode:
                self._clear_derived()
            return

        try:
            localities = await self.lookup.lookup(pincode)
        except LookupUnavailable:
            self.autofill = AutoFill(status=AutoFillStatus.ERROR)
            self._clear_derived()
            return

        if not localities:
            self.autofill = AutoFill(status=AutoFillStatus.NOT_FOUND)
            self._clear_derived()
            return

        first = localities[0]
        self.form.state = first.state
        self.form.district = first.district
        if len(localities) == 1:
            self.form.city = first.name
            self.autofill = AutoFill(
                status=AutoFillStatus.SUCCESS, localities=[first.name], locked=True
            )
        else:
            names = list(dict.fromkeys(loc.name for loc in localities))
            self.form.city = ""
            self.autofill = AutoFill(status=AutoFillStatus.SUCCESS, localities=names)
        for name in AUTOFILL_FIELDS:
            self.errors.pop(name, None)

    def select_locality(self, name: str) -> None:
        if name not in self.autofill.localities:
            raise CheckoutValidationError({"city": f"{name!r} is not served by this PIN code"})
        self.form.city = name
        self.errors.pop("city", None)

    def attach_logo(self, filename: str, content_type: str, size: int, ref: Optional[str] = None) -> LogoAttachment:
        problem = validate_logo(content_type, size)
        if problem:
            raise CheckoutValidationError({"logo": problem})
        self.logo = LogoAttachment(filename=filename, content_type=content_type, size=size, ref=ref)
        return self.logo

    def remove_logo(self) -> None:
        self.logo = None

    # -- step transitions -------------------------------------------------

    def proceed(self) -> bool:
        if self.step != Step.ADDRESS_ENTRY:
            return True
        self.errors = validate_form(self.form)
        if self.errors:
            return False
        self.step = Step.PAYMENT_SELECTION
        return True

    def back(self) -> None:
        self.step = Step.ADDRESS_ENTRY

    def choose_payment(self, method: Union[PaymentMethod, str]) -> None:
        self.payment_method = PaymentMethod(method)

    # -- totals -----------------------------------------------------------

    @property
    def subtotal(self) -> float:
        return self.cart.get_total_price()

    @property
    def shipping_fee(self) -> int:
        return calculate_shipping(self.subtotal, self.form.state)

    @property
    def total(self) -> float:
        return self.subtotal + self.shipping_fee

    # -- submission -------------------------------------------------------

    def _customer(self) -> Customer:
        return Customer(
            name=self.form.name.strip(),
            email=self.form.email.strip(),
            mobile=self.form.mobile.strip(),
        )

    def _address(self) -> Address:
        return Address(
            pincode=self.form.pincode,
            state=self.form.state.strip(),
            district=self.form.district.strip(),
            city=self.form.city.strip(),
            building_line=self.form.building_line.strip(),
            landmark=self.form.landmark.strip() or None,
            address_type=self.form.address_type,
        )

    def _customization(self) -> Optional[Customization]:
        if self.logo is None:
            return None
        return Customization(logo_url=self.logo.ref)

    async def submit(self) -> Union[OrderReceipt, UpiHandoff]:
        if self.step != Step.PAYMENT_SELECTION:
            raise CheckoutValidationError({"step": "Complete the address step first"})
        if self.cart.is_empty():
            raise CheckoutValidationError({"cart": "Your cart is empty"})

        if self.payment_method == PaymentMethod.UPI:
            return self._hand_off_to_upi()

        request = OrderRequest(
            items=[OrderLineIn.from_cart_item(i) for i in self.cart.items],
            customer=self._customer(),
            address=self._address(),
            payment_method=PaymentMethod.COD,
            customization=self._customization(),
            total=self.total,
        )
        receipt = await self.submit_order(request)
        self.cart.clear_cart()
        return receipt

    def _hand_off_to_upi(self) -> UpiHandoff:
        pending = PendingPayment(
            order_code=generate_order_code(),
            items=list(self.cart.items),
            customer=self._customer(),
            address=self._address(),
            customization=self._customization(),
            subtotal=self.subtotal,
            shipping_fee=self.shipping_fee,
            total=self.total,
        )
        stash_pending_payment(self.storage, pending)
        logger.info("Checkout %s handed off to UPI for %.2f", pending.order_code, pending.total)
        return UpiHandoff(
            order_code=pending.order_code,
            amount=pending.total,
            upi_link=build_upi_link(self.upi_id, self.upi_name, pending.total),
            app_links=upi_app_links(self.upi_id, self.upi_name, pending.total),
        )
