"""Pharmacy bounded context — Stock Ledger, Carts and Orders.

Handles per-product stock counters and their reservations, time-bounded
shopping carts that hold stock, the sweep that reclaims abandoned carts, and
the order lifecycle (prescription gating, fulfillment, revenue, cancellation).
"""

import structlog
from protean.domain import Domain

from pharmacy.utils.logging import configure_logging

configure_logging()

pharmacy = Domain(name="pharmacy")

logger = structlog.get_logger(__name__)
