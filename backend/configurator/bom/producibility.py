from decimal import Decimal
from typing import List, Mapping, Optional

from pydantic import BaseModel

from .entities import ResolvedBom
from .exceptions import MaterialNotFoundException


class ProducibilityResult(BaseModel):
    """Nombre d'unités fabricables; `units` vaut None si rien ne limite la production."""
    units: Optional[int] = None
    is_unbounded: bool = False
    limiting_material_ids: List[int] = []


def calculate_producibility(bom: ResolvedBom, stock_by_material: Mapping[int, Decimal]) -> ProducibilityResult:
    """
    Minimum, sur les lignes requises de quantité > 0, de floor(stock / quantité).

    Les lignes optionnelles sont ignorées et un stock négatif compte pour zéro.
    Sans ligne requise, le résultat est explicitement illimité.
    """
    units: Optional[int] = None
    limiting: List[int] = []
    for material_id, line in sorted(bom.lines.items()):
        if not line.is_required or line.quantity <= 0:
            continue
        if material_id not in stock_by_material:
            raise MaterialNotFoundException(material_id, "stock")
        stock = max(Decimal(stock_by_material[material_id]), Decimal(0))
        buildable = int(stock // line.quantity)
        if units is None or buildable < units:
            units = buildable
            limiting = [material_id]
        elif buildable == units:
            limiting.append(material_id)

    if units is None:
        return ProducibilityResult(units=None, is_unbounded=True)
    return ProducibilityResult(units=units, is_unbounded=False, limiting_material_ids=limiting)
