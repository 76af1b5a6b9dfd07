"""Commerce bounded context — inventory ledger, shopping carts and orders.

A single domain holds all three aggregates because order placement must
reserve inventory inside the same unit of work that records the order.
"""

import structlog
from protean.domain import Domain

commerce = Domain(name="commerce")

logger = structlog.get_logger(__name__)
