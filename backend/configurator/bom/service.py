import logging
from typing import List, Optional

from fastcrud import FastCRUD
from pydantic import BaseModel
from sqlalchemy import delete, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from configurator.attributes.models import AttributeOption, ProductAttribute
from configurator.attributes.exceptions import OptionNotFoundException
from configurator.attributes.resolver import AttributeResolver, AxisSource
from configurator.global_attributes.models import GlobalAttributeOption
from configurator.global_attributes.exceptions import GlobalOptionNotFoundException
from configurator.products.models import Product
from configurator.products.exceptions import ProductNotFoundException
from configurator.product_variants.models import ProductVariant
from configurator.product_variants.exceptions import VariantNotFoundException
from configurator.raw_materials import crud as material_crud
from configurator.raw_materials.constants import UNIT_OF_MEASURES
from configurator.raw_materials.exceptions import InvalidUnitOfMeasureException
from .constants import MODIFIER_TYPES, OVERRIDE_TYPES, OverrideType
from .entities import ResolvedBom, SelectedOptionBom
from .models import (
    ProductBomEntry, ProductBomEntryCreate, ProductBomEntryUpdate,
    OptionBomEntry, OptionBomEntryCreate,
    OptionBomModifier, OptionBomModifierCreate,
    VariantBomOverride, VariantBomOverrideCreate,
)
from .producibility import ProducibilityResult, calculate_producibility
from .resolver import BomResolver
from .exceptions import (
    BomEntryNotFoundException,
    DuplicateBomEntryException,
    InvalidBomOperationException,
    MaterialNotFoundException,
    NegativeQuantityException,
)

logger = logging.getLogger(__name__)


class VariantProducibility(BaseModel):
    variant_id: int
    sku: str
    producibility: ProducibilityResult


class BomService:
    """
    Service des nomenclatures en couches.

    Gère les quatre couches (base produit, ajouts et modificateurs par option,
    surcharges par variante) et résout la nomenclature et la productibilité
    d'une variante à partir du stock courant.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.base_crud = FastCRUD(ProductBomEntry)
        self.resolver = BomResolver()
        self.attribute_resolver = AttributeResolver(db)
        logger.info("BomService initialized.")

    # --- Validations communes ---

    async def _require_material(self, material_id: int, source: str) -> None:
        if await material_crud.get_material(self.db, material_id) is None:
            raise MaterialNotFoundException(material_id, source)

    @staticmethod
    def _check_unit(unit: Optional[str]) -> None:
        if unit is not None and unit not in UNIT_OF_MEASURES:
            raise InvalidUnitOfMeasureException(unit)

    async def _check_option_reference(self, option_id: Optional[int], global_option_id: Optional[int], source: str) -> None:
        """Exactement une référence: option propre au produit ou option globale."""
        if (option_id is None) == (global_option_id is None):
            raise InvalidBomOperationException("une seule référence d'option attendue (option ou option globale)", source)
        if option_id is not None and await self.db.get(AttributeOption, option_id) is None:
            raise OptionNotFoundException(option_id)
        if global_option_id is not None and await self.db.get(GlobalAttributeOption, global_option_id) is None:
            raise GlobalOptionNotFoundException(global_option_id)

    # ------------------------------------------------------------------
    # Couche 1: base produit
    # ------------------------------------------------------------------

    async def list_base_entries(self, product_id: int) -> List[ProductBomEntry]:
        stmt = (
            select(ProductBomEntry)
            .where(ProductBomEntry.product_id == product_id)
            .order_by(ProductBomEntry.id)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_base_entry(self, entry_id: int) -> ProductBomEntry:
        entry = await self.db.get(ProductBomEntry, entry_id)
        if entry is None:
            raise BomEntryNotFoundException("base", entry_id)
        return entry

    async def add_base_entry(self, product_id: int, entry_data: ProductBomEntryCreate) -> ProductBomEntry:
        logger.info(f"[BomService] Add base entry (material {entry_data.raw_material_id}) to Product ID: {product_id}")
        if await self.db.get(Product, product_id) is None:
            raise ProductNotFoundException(product_id)
        await self._require_material(entry_data.raw_material_id, "base")
        self._check_unit(entry_data.unit_of_measure)
        if entry_data.quantity < 0:
            raise NegativeQuantityException(entry_data.raw_material_id, entry_data.quantity, "base")
        if await self.base_crud.exists(self.db, product_id=product_id, raw_material_id=entry_data.raw_material_id):
            raise DuplicateBomEntryException(product_id, entry_data.raw_material_id)

        entry = ProductBomEntry(**entry_data.model_dump(), product_id=product_id)
        self.db.add(entry)
        await self.db.commit()
        await self.db.refresh(entry)
        return entry

    async def update_base_entry(self, entry_id: int, entry_data: ProductBomEntryUpdate) -> ProductBomEntry:
        logger.info(f"[BomService] Update base entry ID: {entry_id}")
        entry = await self.get_base_entry(entry_id)
        update_data = entry_data.model_dump(exclude_unset=True)
        if update_data.get("quantity") is not None and update_data["quantity"] < 0:
            raise NegativeQuantityException(entry.raw_material_id, update_data["quantity"], f"base#{entry_id}")
        self._check_unit(update_data.get("unit_of_measure"))

        for key, value in update_data.items():
            setattr(entry, key, value)
        await self.db.commit()
        await self.db.refresh(entry)
        return entry

    async def delete_base_entry(self, entry_id: int) -> None:
        """Supprime une ligne de base et les modificateurs qui la ciblent."""
        logger.info(f"[BomService] Delete base entry ID: {entry_id}")
        entry = await self.get_base_entry(entry_id)
        await self.db.execute(delete(OptionBomModifier).where(OptionBomModifier.product_bom_entry_id == entry_id))
        await self.db.delete(entry)
        await self.db.commit()

    # ------------------------------------------------------------------
    # Couche 2a: ajouts par option
    # ------------------------------------------------------------------

    async def list_option_entries(
        self,
        option_id: Optional[int] = None,
        global_option_id: Optional[int] = None,
    ) -> List[OptionBomEntry]:
        stmt = select(OptionBomEntry)
        if option_id is not None:
            stmt = stmt.where(OptionBomEntry.option_id == option_id)
        if global_option_id is not None:
            stmt = stmt.where(OptionBomEntry.global_option_id == global_option_id)
        return list((await self.db.execute(stmt.order_by(OptionBomEntry.id))).scalars().all())

    async def add_option_entry(self, entry_data: OptionBomEntryCreate) -> OptionBomEntry:
        logger.info(
            f"[BomService] Add option entry (material {entry_data.raw_material_id}) "
            f"option={entry_data.option_id} global_option={entry_data.global_option_id}"
        )
        await self._check_option_reference(entry_data.option_id, entry_data.global_option_id, "ajout")
        await self._require_material(entry_data.raw_material_id, "ajout")
        self._check_unit(entry_data.unit_of_measure)
        if entry_data.quantity < 0:
            raise NegativeQuantityException(entry_data.raw_material_id, entry_data.quantity, "ajout")

        entry = OptionBomEntry.model_validate(entry_data)
        self.db.add(entry)
        await self.db.commit()
        await self.db.refresh(entry)
        return entry

    async def delete_option_entry(self, entry_id: int) -> None:
        logger.info(f"[BomService] Delete option entry ID: {entry_id}")
        entry = await self.db.get(OptionBomEntry, entry_id)
        if entry is None:
            raise BomEntryNotFoundException("ajout d'option", entry_id)
        await self.db.delete(entry)
        await self.db.commit()

    # ------------------------------------------------------------------
    # Couche 2b: modificateurs par option
    # ------------------------------------------------------------------

    async def list_option_modifiers(
        self,
        option_id: Optional[int] = None,
        global_option_id: Optional[int] = None,
    ) -> List[OptionBomModifier]:
        stmt = select(OptionBomModifier)
        if option_id is not None:
            stmt = stmt.where(OptionBomModifier.option_id == option_id)
        if global_option_id is not None:
            stmt = stmt.where(OptionBomModifier.global_option_id == global_option_id)
        return list((await self.db.execute(stmt.order_by(OptionBomModifier.id))).scalars().all())

    async def add_option_modifier(self, modifier_data: OptionBomModifierCreate) -> OptionBomModifier:
        logger.info(
            f"[BomService] Add option modifier {modifier_data.modifier_type} {modifier_data.modifier_value} "
            f"on base entry {modifier_data.product_bom_entry_id}"
        )
        await self._check_option_reference(modifier_data.option_id, modifier_data.global_option_id, "modificateur")
        if modifier_data.modifier_type not in MODIFIER_TYPES:
            raise InvalidBomOperationException(f"type de modificateur '{modifier_data.modifier_type}' inconnu", "modificateur")
        entry = await self.get_base_entry(modifier_data.product_bom_entry_id)
        if modifier_data.option_id is not None:
            option = await self.db.get(AttributeOption, modifier_data.option_id)
            attribute = await self.db.get(ProductAttribute, option.attribute_id)
            if attribute.product_id != entry.product_id:
                raise InvalidBomOperationException(
                    f"l'option {option.id} et la ligne de base {entry.id} appartiennent à des produits différents",
                    "modificateur",
                    entry.raw_material_id,
                )

        modifier = OptionBomModifier.model_validate(modifier_data)
        self.db.add(modifier)
        await self.db.commit()
        await self.db.refresh(modifier)
        return modifier

    async def delete_option_modifier(self, modifier_id: int) -> None:
        logger.info(f"[BomService] Delete option modifier ID: {modifier_id}")
        modifier = await self.db.get(OptionBomModifier, modifier_id)
        if modifier is None:
            raise BomEntryNotFoundException("modificateur d'option", modifier_id)
        await self.db.delete(modifier)
        await self.db.commit()

    # ------------------------------------------------------------------
    # Couche 3: surcharges par variante
    # ------------------------------------------------------------------

    async def list_variant_overrides(self, variant_id: int) -> List[VariantBomOverride]:
        stmt = (
            select(VariantBomOverride)
            .where(VariantBomOverride.variant_id == variant_id)
            .order_by(VariantBomOverride.id)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def add_variant_override(self, variant_id: int, override_data: VariantBomOverrideCreate) -> VariantBomOverride:
        logger.info(f"[BomService] Add {override_data.override_type} override on Variant ID: {variant_id}")
        if await self.db.get(ProductVariant, variant_id) is None:
            raise VariantNotFoundException(variant_id)
        source = "surcharge"
        if override_data.override_type not in OVERRIDE_TYPES:
            raise InvalidBomOperationException(
                f"type de surcharge '{override_data.override_type}' inconnu", source, override_data.raw_material_id
            )
        if override_data.override_type != OverrideType.REMOVE.value and override_data.quantity is None:
            raise InvalidBomOperationException("quantité manquante", source, override_data.raw_material_id)
        if override_data.override_type == OverrideType.REPLACE.value and override_data.replaces_material_id is None:
            raise InvalidBomOperationException("'replace' sans matière remplacée", source, override_data.raw_material_id)
        if override_data.quantity is not None and override_data.quantity < 0:
            raise NegativeQuantityException(override_data.raw_material_id, override_data.quantity, source)
        self._check_unit(override_data.unit_of_measure)
        await self._require_material(override_data.raw_material_id, source)
        if override_data.replaces_material_id is not None:
            await self._require_material(override_data.replaces_material_id, source)

        override = VariantBomOverride(**override_data.model_dump(), variant_id=variant_id)
        self.db.add(override)
        await self.db.commit()
        await self.db.refresh(override)
        return override

    async def delete_variant_override(self, override_id: int) -> None:
        logger.info(f"[BomService] Delete variant override ID: {override_id}")
        override = await self.db.get(VariantBomOverride, override_id)
        if override is None:
            raise BomEntryNotFoundException("surcharge de variante", override_id)
        await self.db.delete(override)
        await self.db.commit()

    # ------------------------------------------------------------------
    # Résolution et productibilité
    # ------------------------------------------------------------------

    async def resolve_variant_bom(self, variant_id: int) -> ResolvedBom:
        """Charge les quatre couches d'une variante et résout sa nomenclature unitaire."""
        logger.debug(f"[BomService] Resolve BOM for Variant ID: {variant_id}")
        variant = await self.db.get(ProductVariant, variant_id)
        if variant is None:
            raise VariantNotFoundException(variant_id)

        base_entries = await self.list_base_entries(variant.product_id)
        base_ids = {entry.id for entry in base_entries}
        selections = await self.attribute_resolver.resolve_variant_selections(variant_id)

        option_ids = [s.option_id for s in selections if s.source == AxisSource.ATTRIBUTE]
        global_option_ids = [s.option_id for s in selections if s.source == AxisSource.GLOBAL_LINK]
        additions = await self._layer_rows(OptionBomEntry, option_ids, global_option_ids)
        modifiers = await self._layer_rows(OptionBomModifier, option_ids, global_option_ids)

        selected: List[SelectedOptionBom] = []
        for selection in selections:
            is_global = selection.source == AxisSource.GLOBAL_LINK

            def matches(row) -> bool:
                if is_global:
                    return row.global_option_id == selection.option_id
                return row.option_id == selection.option_id

            # Une option globale peut porter des modificateurs pour d'autres produits
            option_modifiers = [
                m for m in modifiers
                if matches(m) and (not is_global or m.product_bom_entry_id in base_ids)
            ]
            selected.append(SelectedOptionBom(
                label=selection.token,
                additions=[a for a in additions if matches(a)],
                modifiers=option_modifiers,
            ))

        overrides = await self.list_variant_overrides(variant_id)

        referenced = {e.raw_material_id for e in base_entries}
        referenced.update(a.raw_material_id for a in additions)
        for override in overrides:
            referenced.add(override.raw_material_id)
            if override.replaces_material_id is not None:
                referenced.add(override.replaces_material_id)
        materials = await material_crud.get_materials_by_ids(self.db, referenced)
        units = {material_id: m.unit_of_measure for material_id, m in materials.items()}

        return self.resolver.resolve(base_entries, selected, overrides, units)

    async def _layer_rows(self, model, option_ids: List[int], global_option_ids: List[int]):
        conditions = []
        if option_ids:
            conditions.append(model.option_id.in_(option_ids))
        if global_option_ids:
            conditions.append(model.global_option_id.in_(global_option_ids))
        if not conditions:
            return []
        stmt = select(model).where(or_(*conditions)).order_by(model.id)
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_variant_producibility(self, variant_id: int) -> VariantProducibility:
        """Unités fabricables de la variante avec le stock matière courant."""
        variant = await self.db.get(ProductVariant, variant_id)
        if variant is None:
            raise VariantNotFoundException(variant_id)
        bom = await self.resolve_variant_bom(variant_id)
        stock = await material_crud.get_stock_snapshot(self.db, bom.lines.keys())
        result = calculate_producibility(bom, stock)
        logger.debug(f"[BomService] Variant ID {variant_id}: {result.units} unité(s), illimité={result.is_unbounded}")
        return VariantProducibility(variant_id=variant.id, sku=variant.sku, producibility=result)

    async def list_product_producibility(self, product_id: int) -> List[VariantProducibility]:
        """Productibilité de chaque variante du produit, par position."""
        if await self.db.get(Product, product_id) is None:
            raise ProductNotFoundException(product_id)
        stmt = (
            select(ProductVariant.id)
            .where(ProductVariant.product_id == product_id)
            .order_by(ProductVariant.position, ProductVariant.id)
        )
        variant_ids = list((await self.db.execute(stmt)).scalars().all())
        return [await self.get_variant_producibility(variant_id) for variant_id in variant_ids]
