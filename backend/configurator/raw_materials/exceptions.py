"""
Exceptions personnalisées pour le module des matières premières.
"""
from decimal import Decimal
from typing import Optional


class RawMaterialError(Exception):
    """Classe de base pour les exceptions liées aux matières premières."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class MaterialNotFoundException(RawMaterialError):
    """Levée lorsqu'une matière première référencée n'existe pas."""
    def __init__(self, material_id: int, source: Optional[str] = None):
        message = f"Matière première {material_id} non trouvée"
        if source:
            message += f" (référencée par {source})"
        super().__init__(message + ".")
        self.material_id = material_id
        self.source = source


class DuplicateMaterialSKUException(RawMaterialError):
    def __init__(self, sku: str):
        super().__init__(f"Le SKU matière '{sku}' est déjà utilisé.")
        self.sku = sku


class InvalidUnitOfMeasureException(RawMaterialError):
    def __init__(self, unit: str):
        super().__init__(f"Unité de mesure invalide: '{unit}'.")
        self.unit = unit


class InvalidStockMovementError(RawMaterialError):
    """Levée lorsque le mouvement de stock est invalide."""
    def __init__(self, message: str):
        super().__init__(f"Mouvement de stock invalide: {message}")


class InsufficientMaterialStockError(RawMaterialError):
    """Levée lorsqu'un ajustement rendrait le stock négatif."""
    def __init__(self, material_id: int, requested: Decimal, available: Decimal):
        self.material_id = material_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Stock insuffisant pour la matière {material_id}. "
            f"Demandé: {requested}, Disponible: {available}"
        )


class MaterialInUseException(RawMaterialError):
    """Levée lors de la suppression d'une matière référencée par une nomenclature."""
    def __init__(self, material_id: int, reference_count: int):
        super().__init__(
            f"Impossible de supprimer la matière {material_id}: "
            f"référencée par {reference_count} ligne(s) de nomenclature. Désactivez-la plutôt."
        )
        self.material_id = material_id
        self.reference_count = reference_count
