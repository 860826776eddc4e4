"""
Interfaces pour les repositories de variantes de produits.

Ce fichier contient les interfaces (classes abstraites) pour les repositories
utilisés dans le module product_variants.
"""
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Tuple, Set, Iterable

from configurator.product_variants.models import (
    ProductVariant,
    ProductVariantOption,
    ProductVariantGlobalOption,
)


class AbstractProductVariantRepository(ABC):
    """Interface pour le repository des variantes de produits."""

    @abstractmethod
    async def get_by_id(self, variant_id: int) -> Optional[ProductVariant]:
        """Récupère une variante de produit par son ID."""
        pass

    @abstractmethod
    async def get_by_sku(self, sku: str) -> Optional[ProductVariant]:
        """Récupère une variante de produit par son SKU."""
        pass

    @abstractmethod
    async def list_for_product(self, product_id: int, limit: int = 50, offset: int = 0) -> Tuple[List[ProductVariant], int]:
        """Liste les variantes pour un produit donné avec pagination et retourne le total."""
        pass

    @abstractmethod
    async def existing_combination_keys(self, product_id: int) -> Set[str]:
        """Clés canoniques des combinaisons déjà présentes pour le produit."""
        pass

    @abstractmethod
    async def max_position(self, product_id: int) -> Optional[int]:
        """Position la plus haute parmi les variantes du produit (None si aucune)."""
        pass

    @abstractmethod
    async def existing_skus(self, skus: Iterable[str]) -> Set[str]:
        """Sous-ensemble des SKU donnés déjà utilisés."""
        pass

    @abstractmethod
    async def add_with_options(
        self,
        variant: ProductVariant,
        options: List[ProductVariantOption],
        global_options: List[ProductVariantGlobalOption],
    ) -> ProductVariant:
        """Ajoute une variante et ses lignes de jonction (flush, sans commit)."""
        pass

    @abstractmethod
    async def update(self, variant: ProductVariant, variant_data: Dict[str, Any]) -> ProductVariant:
        """Met à jour une variante de produit existante (flush, sans commit)."""
        pass

    @abstractmethod
    async def delete(self, variant: ProductVariant) -> None:
        """Supprime une variante et ses lignes de jonction (flush, sans commit)."""
        pass
