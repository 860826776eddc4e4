"""
Module product_variants.

Ce module gère les variantes de produits:
- Génération des combinaisons d'options (produit cartésien des axes)
- Création et modification manuelles des variantes
- Stock, prix et poids effectifs des variantes
"""

from .models import (
    ProductVariant,
    ProductVariantOption,
    ProductVariantGlobalOption,
    ProductVariantCreate,
    ProductVariantRead,
    ProductVariantUpdate,
    ProductVariantWithOptions,
    VariantOptionSelection,
)
from .exceptions import (
    ProductVariantDomainException,
    VariantNotFoundException,
    DuplicateSKUException,
    DuplicateCombinationException,
    InvalidVariantSelectionException,
    InvalidVariantDataException,
    VariantGenerationException,
)

__all__ = [
    'ProductVariant',
    'ProductVariantOption',
    'ProductVariantGlobalOption',
    'ProductVariantCreate',
    'ProductVariantRead',
    'ProductVariantUpdate',
    'ProductVariantWithOptions',
    'VariantOptionSelection',
    'ProductVariantDomainException',
    'VariantNotFoundException',
    'DuplicateSKUException',
    'DuplicateCombinationException',
    'InvalidVariantSelectionException',
    'InvalidVariantDataException',
    'VariantGenerationException',
]
