from decimal import Decimal
from typing import Optional, Sequence

from configurator.attributes.resolver import AxisOption


def effective_price(
    explicit_price: Optional[Decimal],
    base_price: Decimal,
    selections: Sequence[AxisOption],
) -> Decimal:
    """Prix explicite de la variante, sinon prix de base + somme des modificateurs."""
    if explicit_price is not None:
        return explicit_price
    total = Decimal(base_price or 0)
    for selection in selections:
        if selection.price_modifier is not None:
            total += selection.price_modifier
    return total


def effective_weight(
    explicit_weight: Optional[int],
    base_weight: int,
    selections: Sequence[AxisOption],
) -> int:
    """Poids explicite (grammes), sinon poids de base + somme des modificateurs."""
    if explicit_weight is not None:
        return explicit_weight
    return (base_weight or 0) + sum(
        s.weight_modifier_grams for s in selections if s.weight_modifier_grams is not None
    )
