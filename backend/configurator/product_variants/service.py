import asyncio
import logging
import weakref
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from configurator.config import settings
from configurator.attributes.models import ProductAttribute, AttributeOption
from configurator.attributes.resolver import (
    AttributeResolver,
    AxisOption,
    AxisSource,
    VariantSelection,
    selection_token,
)
from configurator.global_attributes.models import GlobalAttributeOption, ProductGlobalAttributeLink
from configurator.products.models import Product
from configurator.products.service import default_sku_prefix
from configurator.products.exceptions import ProductNotFoundException
from configurator.core.schemas import PaginatedResponse
from .combinations import cartesian_product, combination_key, build_sku, describe
from .pricing import effective_price, effective_weight
from .interfaces.repositories import AbstractProductVariantRepository
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
    VariantNotFoundException,
    DuplicateSKUException,
    DuplicateCombinationException,
    InvalidVariantSelectionException,
    InvalidVariantDataException,
    VariantGenerationException,
)

logger = logging.getLogger(__name__)

# Un verrou par produit, tant qu'une génération le détient ou l'attend
_generation_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()


def _generation_lock(product_id: int) -> asyncio.Lock:
    lock = _generation_locks.get(product_id)
    if lock is None:
        lock = asyncio.Lock()
        _generation_locks[product_id] = lock
    return lock


class PaginatedVariantResponse(PaginatedResponse[ProductVariantRead]):
    pass


def _is_generation_race(error: IntegrityError) -> bool:
    """Violation d'unicité causée par une génération concurrente (combinaison ou SKU)."""
    message = str(error.orig if error.orig is not None else error).lower()
    return any(marker in message for marker in ("combination_key", "uq_variant_combination", "sku"))


class ProductVariantService:
    """Service applicatif pour la génération et la gestion des variantes de produits."""

    def __init__(self, db: AsyncSession, variant_repo: AbstractProductVariantRepository):
        self.db = db
        self.variant_repo = variant_repo
        self.resolver = AttributeResolver(db)
        logger.info("ProductVariantService initialized.")

    async def _get_product(self, product_id: int) -> Product:
        product = await self.db.get(Product, product_id)
        if product is None:
            raise ProductNotFoundException(product_id)
        return product

    # ------------------------------------------------------------------
    # Génération des combinaisons
    # ------------------------------------------------------------------

    async def generate_variants(self, product_id: int, sku_prefix: Optional[str] = None) -> List[ProductVariant]:
        """
        Crée les variantes manquantes du produit (produit cartésien des axes).

        Les combinaisons existantes sont conservées telles quelles; un second appel
        sans changement de catalogue ne crée rien. L'opération est atomique.

        Args:
            product_id: ID du produit
            sku_prefix: Préfixe SKU; par défaut celui du produit, sinon son nom abrégé

        Returns:
            List[ProductVariant]: Les variantes créées par cet appel

        Raises:
            NoAttributesException: Aucun axe avec options actives
            DuplicateSKUException: Un SKU planifié est déjà pris (rien n'est écrit)
            VariantGenerationException: Échec d'écriture, tout a été annulé
        """
        logger.info(f"[VariantService] Generate variants for Product ID: {product_id}")
        async with _generation_lock(product_id):
            attempts = max(1, settings.VARIANT_GENERATION_MAX_ATTEMPTS)
            for attempt in range(1, attempts + 1):
                try:
                    return await self._generate_once(product_id, sku_prefix)
                except IntegrityError as e:
                    await self.db.rollback()
                    if _is_generation_race(e) and attempt < attempts:
                        logger.warning(
                            f"[VariantService] Génération concurrente détectée pour le produit {product_id} "
                            f"(tentative {attempt}/{attempts}), nouvel essai."
                        )
                        continue
                    logger.error(f"[VariantService] Échec génération produit {product_id}: {e}", exc_info=True)
                    raise VariantGenerationException(product_id, "violation de contrainte") from e
                except SQLAlchemyError as e:
                    await self.db.rollback()
                    logger.error(f"[VariantService] Échec génération produit {product_id}: {e}", exc_info=True)
                    raise VariantGenerationException(product_id, str(e)) from e
                except DuplicateSKUException:
                    # Libère le verrou transactionnel; rien n'a été écrit
                    await self.db.rollback()
                    raise
        raise VariantGenerationException(product_id, "nombre maximal de tentatives atteint")

    async def _acquire_advisory_lock(self, product_id: int) -> None:
        """Verrou transactionnel PostgreSQL, libéré au commit ou au rollback."""
        if not settings.USE_ADVISORY_LOCK:
            return
        if self.db.get_bind().dialect.name != "postgresql":
            return
        await self.db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": product_id})

    async def _generate_once(self, product_id: int, sku_prefix: Optional[str]) -> List[ProductVariant]:
        product = await self._get_product(product_id)
        axes = await self.resolver.resolve_axes(product_id)
        prefix = sku_prefix or default_sku_prefix(product)

        await self._acquire_advisory_lock(product_id)
        existing_keys = await self.variant_repo.existing_combination_keys(product_id)

        planned: List[Tuple[str, List[AxisOption], str]] = []
        for combination in cartesian_product(axes):
            key = combination_key(option.token for option in combination)
            if key in existing_keys:
                continue
            planned.append((key, combination, build_sku(prefix, combination)))

        logger.info(
            f"[VariantService] Produit {product_id}: {len(planned)} combinaison(s) à créer, "
            f"{len(existing_keys)} existante(s)."
        )
        if not planned:
            await self.db.commit()
            return []

        planned_skus = set()
        for _, _, sku in planned:
            if sku in planned_skus:
                raise DuplicateSKUException(sku)
            planned_skus.add(sku)
        taken = await self.variant_repo.existing_skus(planned_skus)
        if taken:
            raise DuplicateSKUException(sorted(taken)[0])

        max_position = await self.variant_repo.max_position(product_id)
        next_position = 0 if max_position is None else max_position + 1

        created: List[ProductVariant] = []
        for key, combination, sku in planned:
            variant = ProductVariant(
                product_id=product_id,
                sku=sku,
                combination_key=key,
                position=next_position,
                low_stock_threshold=settings.DEFAULT_LOW_STOCK_THRESHOLD,
            )
            await self.variant_repo.add_with_options(
                variant,
                [
                    ProductVariantOption(attribute_id=o.axis_id, option_id=o.option_id)
                    for o in combination if o.source == AxisSource.ATTRIBUTE
                ],
                [
                    ProductVariantGlobalOption(link_id=o.axis_id, global_option_id=o.option_id)
                    for o in combination if o.source == AxisSource.GLOBAL_LINK
                ],
            )
            created.append(variant)
            next_position += 1

        if not product.has_variants:
            product.has_variants = True
        await self.db.commit()
        logger.info(f"[VariantService] {len(created)} variante(s) créée(s) pour le produit {product_id}.")
        return created

    # ------------------------------------------------------------------
    # Gestion manuelle
    # ------------------------------------------------------------------

    async def get_variant(self, variant_id: int) -> ProductVariant:
        logger.debug(f"[VariantService] Get Variant ID: {variant_id}")
        variant = await self.variant_repo.get_by_id(variant_id)
        if not variant:
            raise VariantNotFoundException(variant_id)
        return variant

    async def get_by_sku(self, sku: str) -> ProductVariant:
        logger.debug(f"[VariantService] Get Variant SKU: {sku}")
        variant = await self.variant_repo.get_by_sku(sku)
        if not variant:
            raise VariantNotFoundException(sku=sku)
        return variant

    async def list_variants(self, product_id: int, limit: Optional[int] = None, offset: int = 0) -> PaginatedVariantResponse:
        """Liste les variantes d'un produit, par position."""
        limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        logger.debug(f"[VariantService] List Variants for Product ID: {product_id}, limit={limit}, offset={offset}")
        await self._get_product(product_id)
        variants, total = await self.variant_repo.list_for_product(product_id, limit=limit, offset=offset)
        return PaginatedVariantResponse(
            items=[ProductVariantRead.model_validate(v) for v in variants],
            total=total,
        )

    async def _selection_rows(
        self,
        product_id: int,
        selections: List[VariantOptionSelection],
    ) -> Tuple[List[ProductVariantOption], List[ProductVariantGlobalOption]]:
        """Valide les sélections d'une variante manuelle contre les axes du produit."""
        options: List[ProductVariantOption] = []
        global_options: List[ProductVariantGlobalOption] = []
        for selection in selections:
            if selection.attribute_id is not None and selection.option_id is not None:
                attribute = await self.db.get(ProductAttribute, selection.attribute_id)
                option = await self.db.get(AttributeOption, selection.option_id)
                if attribute is None or attribute.product_id != product_id:
                    raise InvalidVariantSelectionException(
                        product_id, f"attribut {selection.attribute_id} hors du produit"
                    )
                if option is None or option.attribute_id != attribute.id:
                    raise InvalidVariantSelectionException(
                        product_id, f"option {selection.option_id} hors de l'attribut {attribute.id}"
                    )
                options.append(ProductVariantOption(attribute_id=attribute.id, option_id=option.id))
            elif selection.link_id is not None and selection.global_option_id is not None:
                link = await self.db.get(ProductGlobalAttributeLink, selection.link_id)
                option = await self.db.get(GlobalAttributeOption, selection.global_option_id)
                if link is None or link.product_id != product_id:
                    raise InvalidVariantSelectionException(product_id, f"lien {selection.link_id} hors du produit")
                if option is None or option.global_attribute_id != link.global_attribute_id:
                    raise InvalidVariantSelectionException(
                        product_id, f"option globale {selection.global_option_id} hors du lien {link.id}"
                    )
                global_options.append(ProductVariantGlobalOption(link_id=link.id, global_option_id=option.id))
            else:
                raise InvalidVariantSelectionException(
                    product_id, "une sélection doit donner (attribute_id, option_id) ou (link_id, global_option_id)"
                )

        if len({o.attribute_id for o in options}) != len(options) or \
                len({g.link_id for g in global_options}) != len(global_options):
            raise InvalidVariantSelectionException(product_id, "une seule option par axe")
        return options, global_options

    async def create_variant(self, product_id: int, variant_data: ProductVariantCreate) -> ProductVariant:
        """Crée une variante manuellement, avec ou sans sélections d'options."""
        logger.info(f"[VariantService] Create Variant for Product ID: {product_id}, SKU: {variant_data.sku}")
        await self._get_product(product_id)
        if variant_data.stock_quantity < 0:
            raise InvalidVariantDataException("le stock ne peut pas être négatif")

        options, global_options = await self._selection_rows(product_id, variant_data.selections)
        key = combination_key(
            [selection_token(AxisSource.ATTRIBUTE, o.attribute_id, o.option_id) for o in options]
            + [selection_token(AxisSource.GLOBAL_LINK, g.link_id, g.global_option_id) for g in global_options]
        )
        if key is not None and key in await self.variant_repo.existing_combination_keys(product_id):
            raise DuplicateCombinationException(product_id, key)
        if await self.variant_repo.get_by_sku(variant_data.sku):
            raise DuplicateSKUException(variant_data.sku)

        variant = ProductVariant(
            **variant_data.model_dump(exclude={"selections"}),
            product_id=product_id,
            combination_key=key,
        )
        try:
            await self.variant_repo.add_with_options(variant, options, global_options)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(f"[VariantService] Erreur intégrité création variante: {e}", exc_info=True)
            if key is not None and "combination" in str(e.orig).lower():
                raise DuplicateCombinationException(product_id, key) from e
            raise DuplicateSKUException(variant_data.sku) from e
        logger.info(f"[VariantService] Variant ID {variant.id} created.")
        return variant

    async def update_variant(self, variant_id: int, variant_data: ProductVariantUpdate) -> ProductVariant:
        """Met à jour les champs fournis; les options d'une variante ne changent pas."""
        logger.info(f"[VariantService] Update Variant ID: {variant_id}")
        variant = await self.get_variant(variant_id)
        update_data = variant_data.model_dump(exclude_unset=True)

        if "sku" in update_data and not (update_data["sku"] or "").strip():
            raise InvalidVariantDataException("le SKU ne peut pas être vide")
        for name in ("stock_quantity", "low_stock_threshold", "is_active", "position"):
            if name in update_data and update_data[name] is None:
                raise InvalidVariantDataException(f"'{name}' ne peut pas être nul")
        if update_data.get("stock_quantity") is not None and update_data["stock_quantity"] < 0:
            raise InvalidVariantDataException("le stock ne peut pas être négatif")
        new_sku = update_data.get("sku")
        if new_sku and new_sku != variant.sku and await self.variant_repo.get_by_sku(new_sku):
            raise DuplicateSKUException(new_sku)

        try:
            await self.variant_repo.update(variant, update_data)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(f"[VariantService] Erreur intégrité MAJ variante {variant_id}: {e}", exc_info=True)
            raise DuplicateSKUException(new_sku or variant.sku) from e
        return variant

    async def update_stock(self, variant_id: int, quantity: int) -> ProductVariant:
        """Fixe la quantité en stock d'une variante."""
        logger.info(f"[VariantService] Update stock of Variant ID {variant_id} to {quantity}")
        return await self.update_variant(variant_id, ProductVariantUpdate(stock_quantity=quantity))

    async def delete_variant(self, variant_id: int) -> None:
        """Suppression manuelle; la génération ne supprime jamais de variante."""
        logger.info(f"[VariantService] Delete Variant ID: {variant_id}")
        variant = await self.get_variant(variant_id)
        await self.variant_repo.delete(variant)
        await self.db.commit()

    # ------------------------------------------------------------------
    # Lecture: options, prix et poids effectifs
    # ------------------------------------------------------------------

    async def list_variant_options(self, variant_id: int) -> List[VariantSelection]:
        return await self.resolver.resolve_variant_selections(variant_id)

    async def describe_options(self, variant_id: int) -> str:
        """Libellé des options, ex. 'Couleur: Noir / Taille: Grand'."""
        selections = await self.list_variant_options(variant_id)
        return describe(selections, [s.axis_display_name for s in selections])

    async def get_effective_price(self, variant_id: int) -> Decimal:
        variant = await self.get_variant(variant_id)
        product = await self._get_product(variant.product_id)
        selections = await self.list_variant_options(variant_id)
        return effective_price(variant.price, product.base_price, selections)

    async def get_effective_weight(self, variant_id: int) -> int:
        variant = await self.get_variant(variant_id)
        product = await self._get_product(variant.product_id)
        selections = await self.list_variant_options(variant_id)
        return effective_weight(variant.weight_grams, product.base_weight_grams, selections)

    async def get_variant_with_options(self, variant_id: int) -> ProductVariantWithOptions:
        """Variante enrichie: libellé des options, prix et poids effectifs."""
        variant = await self.get_variant(variant_id)
        product = await self._get_product(variant.product_id)
        selections = await self.list_variant_options(variant_id)
        return ProductVariantWithOptions(
            **ProductVariantRead.model_validate(variant).model_dump(),
            options_label=describe(selections, [s.axis_display_name for s in selections]),
            effective_price=effective_price(variant.price, product.base_price, selections),
            effective_weight_grams=effective_weight(variant.weight_grams, product.base_weight_grams, selections),
        )
