"""Fun Prints storefront backend: catalogue, cart, checkout and order administration."""

__version__ = "0.1.0"
