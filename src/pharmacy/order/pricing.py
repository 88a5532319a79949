"""Delivery fee lookup.

Fees are flat per destination city. Cities outside the table pay the default
fee. Tax and discounts are not applied at checkout.
"""

DEFAULT_DELIVERY_FEE = 150.0

DELIVERY_FEES = {
    "kathmandu": 50.0,
    "lalitpur": 50.0,
    "bhaktapur": 75.0,
    "kirtipur": 75.0,
    "pokhara": 120.0,
}


def delivery_fee_for(address):
    """Return the delivery fee for an address dict (or DeliveryAddress)."""
    city = address.get("city") if isinstance(address, dict) else getattr(address, "city", None)
    return DELIVERY_FEES.get((city or "").strip().lower(), DEFAULT_DELIVERY_FEE)
