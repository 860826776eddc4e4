"""Structures de résolution des nomenclatures (indépendantes de la base)."""
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from .models import OptionBomEntry, OptionBomModifier


class BomOperationKind(str, Enum):
    SEED = "seed"                    # couche 1: ligne de base
    ADD = "add"                      # incrémente ou insère (2a, surcharge 'add')
    MODIFY_MULTIPLY = "modify_multiply"
    MODIFY_ADD = "modify_add"
    MODIFY_SET = "modify_set"
    SET_QUANTITY = "set_quantity"    # force la quantité, insère si absente
    REMOVE = "remove"
    REPLACE = "replace"


class BomOperation(BaseModel):
    """Une étape de la résolution; la liste ordonnée sert de trace d'audit."""
    kind: BomOperationKind
    material_id: int
    quantity: Optional[Decimal] = None
    unit: Optional[str] = None
    is_required: bool = True
    replaces_material_id: Optional[int] = None
    source: str


class ResolvedBomLine(BaseModel):
    material_id: int
    quantity: Decimal
    unit: str
    is_required: bool = True


class ResolvedBom(BaseModel):
    lines: Dict[int, ResolvedBomLine] = {}
    operations: List[BomOperation] = []

    def as_mapping(self) -> Dict[int, Tuple[Decimal, str]]:
        """{material_id: (quantité, unité)}"""
        return {material_id: (line.quantity, line.unit) for material_id, line in self.lines.items()}


class SelectedOptionBom(BaseModel):
    """Couche 2 d'une option retenue par la variante (dans l'ordre des axes)."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    label: str
    additions: List[OptionBomEntry] = []
    modifiers: List[OptionBomModifier] = []
