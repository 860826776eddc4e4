"""
Constantes pour le module des nomenclatures (BOM).
"""
from enum import Enum


class ModifierType(str, Enum):
    """Couche 2b: transformation d'une ligne de la nomenclature de base."""
    MULTIPLY = "multiply"
    ADD = "add"
    SET = "set"


class OverrideType(str, Enum):
    """Couche 3: surcharge propre à une variante."""
    REPLACE = "replace"
    ADD = "add"
    REMOVE = "remove"
    SET_QUANTITY = "set_quantity"


MODIFIER_TYPES = tuple(t.value for t in ModifierType)
OVERRIDE_TYPES = tuple(t.value for t in OverrideType)
