"""Exceptions spécifiques au domaine des nomenclatures (BOM)."""
from decimal import Decimal
from typing import Optional

# Réexportée: une matière absente est une erreur de nomenclature pour l'appelant
from configurator.raw_materials.exceptions import MaterialNotFoundException  # noqa: F401


class BomDomainException(Exception):
    """Classe de base pour les exceptions du domaine BOM."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class BomEntryNotFoundException(BomDomainException):
    def __init__(self, layer: str, entry_id: int):
        super().__init__(f"Ligne de nomenclature ({layer}) avec ID {entry_id} non trouvée.")
        self.layer = layer
        self.entry_id = entry_id


class DuplicateBomEntryException(BomDomainException):
    def __init__(self, product_id: int, material_id: int):
        super().__init__(f"Le produit {product_id} a déjà une ligne pour la matière {material_id}.")
        self.product_id = product_id
        self.material_id = material_id


class NegativeQuantityException(BomDomainException):
    """Levée lorsqu'une quantité intermédiaire devient négative pendant la résolution."""
    def __init__(self, material_id: int, quantity: Decimal, source: str):
        super().__init__(
            f"Quantité négative ({quantity}) pour la matière {material_id} après l'opération {source}."
        )
        self.material_id = material_id
        self.quantity = quantity
        self.source = source


class InvalidBomOperationException(BomDomainException):
    """Levée lorsqu'une opération de nomenclature est structurellement invalide."""
    def __init__(self, reason: str, source: str, material_id: Optional[int] = None):
        message = f"Opération de nomenclature invalide ({source}): {reason}"
        if material_id is not None:
            message += f" [matière {material_id}]"
        super().__init__(message)
        self.reason = reason
        self.source = source
        self.material_id = material_id
