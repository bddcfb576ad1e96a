"""Flat-rate shipping: free above the threshold, cheaper inside the home state."""
from __future__ import annotations
from typing import Optional

FREE_SHIPPING_THRESHOLD = 1000
HOME_STATE = "Tamil Nadu"
HOME_STATE_FEE = 60
DEFAULT_FEE = 100


def calculate_shipping(subtotal: float, destination_state: Optional[str]) -> int:
    if subtotal >= FREE_SHIPPING_THRESHOLD:
        return 0
    if (destination_state or "").strip().casefold() == HOME_STATE.casefold():
        return HOME_STATE_FEE
    return DEFAULT_FEE


def order_total(subtotal: float, destination_state: Optional[str]) -> float:
    return subtotal + calculate_shipping(subtotal, destination_state)
