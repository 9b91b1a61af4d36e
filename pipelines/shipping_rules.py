from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional

from .delivery_graph import MethodDefinition, MoneyCriteria, WeightCriteria

logger = logging.getLogger(__name__)

FREE_SHIPPING_MIN_ORDER_AMOUNT = 100.0
FREE_SHIPPING_MIN_WEIGHT = 20.0

GTE_OPERATORS = {'>=', 'GREATER_THAN_OR_EQUAL_TO'}
LTE_OPERATORS = {'<=', 'LESS_THAN_OR_EQUAL_TO'}


@dataclass
class InferredRate:
    price: float
    min_order_amount: Optional[float] = None
    max_order_amount: Optional[float] = None
    min_weight: Optional[float] = None
    max_weight: Optional[float] = None
    free_shipping: bool = False


@dataclass(frozen=True)
class FreeShippingPolicy:
    """Name + threshold heuristic deciding when a rate is really free.

    Shopify has no single free-shipping flag across rate providers, so a rate is
    treated as free when its name says "free", when a "standard" rate only applies
    above ``min_order_amount``, or when an "international" rate only applies above
    ``min_weight``.
    """
    min_order_amount: float = FREE_SHIPPING_MIN_ORDER_AMOUNT
    min_weight: float = FREE_SHIPPING_MIN_WEIGHT

    def is_free(self, name: str, rate: InferredRate) -> bool:
        lowered = (name or '').lower()
        if 'free' in lowered:
            return True
        if rate.min_order_amount is not None and rate.min_order_amount >= self.min_order_amount and 'standard' in lowered:
            return True
        if rate.min_weight is not None and rate.min_weight >= self.min_weight and 'international' in lowered:
            return True
        return False


DEFAULT_POLICY = FreeShippingPolicy()


def infer_rate(method: MethodDefinition, policy: FreeShippingPolicy = DEFAULT_POLICY) -> InferredRate:
    rate = InferredRate(price=method.price if method.price is not None else 0.0)
    for cond in method.conditions:
        if cond.field == 'TOTAL_PRICE' and isinstance(cond.criteria, MoneyCriteria):
            if cond.operator in GTE_OPERATORS:
                rate.min_order_amount = cond.criteria.amount
            elif cond.operator in LTE_OPERATORS:
                rate.max_order_amount = cond.criteria.amount
        elif cond.field == 'WEIGHT' and isinstance(cond.criteria, WeightCriteria):
            if cond.operator in GTE_OPERATORS:
                rate.min_weight = cond.criteria.value
            elif cond.operator in LTE_OPERATORS:
                rate.max_weight = cond.criteria.value
    if policy.is_free(method.name, rate):
        logger.debug('Applied free shipping rule to %r', method.name)
        rate.price = 0.0
        rate.free_shipping = True
    return rate
