"""
Implémentation des repositories pour les variantes de produits.

Le repository ne commit ni ne rollback jamais: les frontières de transaction
appartiennent au service (la génération de variantes est tout-ou-rien).
"""
import logging
from collections import defaultdict
from typing import Optional, List, Dict, Any, Tuple, Set, Iterable

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from configurator.attributes.resolver import AxisSource, selection_token
from configurator.product_variants.combinations import combination_key
from configurator.product_variants.models import (
    ProductVariant,
    ProductVariantOption,
    ProductVariantGlobalOption,
)
from configurator.bom.models import VariantBomOverride
from configurator.product_variants.interfaces.repositories import AbstractProductVariantRepository

logger = logging.getLogger(__name__)


class SQLAlchemyProductVariantRepository(AbstractProductVariantRepository):
    """Implémentation SQLAlchemy du repository de variantes de produits."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, variant_id: int) -> Optional[ProductVariant]:
        """Récupère une variante de produit par son ID."""
        variant = await self.session.get(ProductVariant, variant_id)
        if not variant:
            logger.debug(f"Variante ID {variant_id} non trouvée dans get_by_id().")
        return variant

    async def get_by_sku(self, sku: str) -> Optional[ProductVariant]:
        """Récupère une variante de produit par son SKU."""
        stmt = select(ProductVariant).where(ProductVariant.sku == sku)
        result = await self.session.execute(stmt)
        variant = result.scalar_one_or_none()
        if not variant:
            logger.debug(f"Variante SKU {sku} non trouvée dans get_by_sku().")
        return variant

    async def list_for_product(self, product_id: int, limit: int = 50, offset: int = 0) -> Tuple[List[ProductVariant], int]:
        """Liste les variantes pour un produit donné avec pagination et retourne le total."""
        stmt = (
            select(ProductVariant)
            .where(ProductVariant.product_id == product_id)
            .order_by(ProductVariant.position, ProductVariant.id)
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        variants = list(result.scalars().all())

        count_stmt = (
            select(func.count(ProductVariant.id))
            .where(ProductVariant.product_id == product_id)
        )
        total_result = await self.session.execute(count_stmt)
        total_count = total_result.scalar_one() or 0

        return variants, total_count

    async def existing_combination_keys(self, product_id: int) -> Set[str]:
        """
        Clés des combinaisons existantes.

        La clé est recalculée depuis les lignes de jonction, pour couvrir aussi les
        variantes dont la clé stockée est absente.
        """
        stmt = select(ProductVariant.id, ProductVariant.combination_key).where(
            ProductVariant.product_id == product_id
        )
        rows = (await self.session.execute(stmt)).all()
        if not rows:
            return set()

        tokens: Dict[int, List[str]] = defaultdict(list)
        variant_ids = [variant_id for variant_id, _ in rows]
        stmt = select(ProductVariantOption).where(ProductVariantOption.variant_id.in_(variant_ids))
        for row in (await self.session.execute(stmt)).scalars().all():
            tokens[row.variant_id].append(selection_token(AxisSource.ATTRIBUTE, row.attribute_id, row.option_id))
        stmt = select(ProductVariantGlobalOption).where(ProductVariantGlobalOption.variant_id.in_(variant_ids))
        for row in (await self.session.execute(stmt)).scalars().all():
            tokens[row.variant_id].append(selection_token(AxisSource.GLOBAL_LINK, row.link_id, row.global_option_id))

        keys = set()
        for variant_id, stored_key in rows:
            if stored_key:
                keys.add(stored_key)
            computed = combination_key(tokens.get(variant_id, []))
            if computed:
                keys.add(computed)
        return keys

    async def max_position(self, product_id: int) -> Optional[int]:
        stmt = select(func.max(ProductVariant.position)).where(ProductVariant.product_id == product_id)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def existing_skus(self, skus: Iterable[str]) -> Set[str]:
        skus = list(skus)
        if not skus:
            return set()
        stmt = select(ProductVariant.sku).where(ProductVariant.sku.in_(skus))
        return set((await self.session.execute(stmt)).scalars().all())

    async def add_with_options(
        self,
        variant: ProductVariant,
        options: List[ProductVariantOption],
        global_options: List[ProductVariantGlobalOption],
    ) -> ProductVariant:
        """Ajoute une variante puis ses lignes de jonction."""
        self.session.add(variant)
        await self.session.flush()  # Obtenir l'ID et vérifier les contraintes
        for row in options:
            row.variant_id = variant.id
            self.session.add(row)
        for row in global_options:
            row.variant_id = variant.id
            self.session.add(row)
        await self.session.flush()
        logger.debug(f"Variante ID {variant.id} ({variant.sku}) ajoutée pour produit {variant.product_id}.")
        return variant

    async def update(self, variant: ProductVariant, variant_data: Dict[str, Any]) -> ProductVariant:
        for key, value in variant_data.items():
            if hasattr(variant, key):
                setattr(variant, key, value)
        await self.session.flush()
        logger.info(f"Variante ID {variant.id} mise à jour.")
        return variant

    async def delete(self, variant: ProductVariant) -> None:
        await self.session.execute(
            delete(ProductVariantOption).where(ProductVariantOption.variant_id == variant.id)
        )
        await self.session.execute(
            delete(ProductVariantGlobalOption).where(ProductVariantGlobalOption.variant_id == variant.id)
        )
        await self.session.execute(
            delete(VariantBomOverride).where(VariantBomOverride.variant_id == variant.id)
        )
        await self.session.delete(variant)
        await self.session.flush()
        logger.info(f"Variante ID {variant.id} supprimée.")
