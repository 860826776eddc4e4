"""
Résolution des axes de variation d'un produit.

Un axe est soit un attribut propre au produit, soit un lien vers un attribut
global sous un rôle (le même template peut être lié plusieurs fois). Chaque axe
porte ses options applicables, actives, dans l'ordre d'affichage.
"""
import logging
from collections import defaultdict
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from configurator.products.models import Product
from configurator.products.exceptions import ProductNotFoundException
from configurator.global_attributes.models import (
    GlobalAttribute,
    GlobalAttributeMetadataField,
    GlobalAttributeOption,
    ProductGlobalAttributeLink,
    ProductGlobalOptionSelection,
)
from configurator.global_attributes.metadata import metadata_modifier
from configurator.product_variants.models import (
    ProductVariant,
    ProductVariantOption,
    ProductVariantGlobalOption,
)
from configurator.product_variants.exceptions import VariantNotFoundException
from .models import ProductAttribute, AttributeOption
from .exceptions import NoAttributesException

logger = logging.getLogger(__name__)


class AxisSource(str, Enum):
    ATTRIBUTE = "attribute"
    GLOBAL_LINK = "global_link"


def selection_token(source: AxisSource, axis_id: int, option_id: int) -> str:
    """Identifiant d'une sélection dans la clé canonique d'une combinaison."""
    if source == AxisSource.ATTRIBUTE:
        return f"a{option_id}"
    # L'option globale est qualifiée par son lien: Noir/Blanc et Blanc/Noir
    # sous deux rôles du même template restent distincts.
    return f"g{axis_id}.{option_id}"


class AxisOption(BaseModel):
    source: AxisSource
    axis_id: int
    option_id: int
    value: str
    display_value: str
    price_modifier: Optional[Decimal] = None
    weight_modifier_grams: Optional[int] = None

    @property
    def token(self) -> str:
        return selection_token(self.source, self.axis_id, self.option_id)


class ResolvedAxis(BaseModel):
    source: AxisSource
    axis_id: int
    name: str
    display_name: str
    position: int
    affects_pricing: bool = False
    affects_shipping: bool = False
    options: List[AxisOption] = []


class VariantSelection(AxisOption):
    """Option retenue par une variante existante, avec le libellé de son axe."""
    axis_name: str
    axis_display_name: str


def _global_modifiers(
    link: ProductGlobalAttributeLink,
    option: GlobalAttributeOption,
    selection: Optional[ProductGlobalOptionSelection],
    fields_by_name: Dict[str, GlobalAttributeMetadataField],
) -> Tuple[Optional[Decimal], Optional[int]]:
    """
    Modificateurs prix/poids d'une option globale pour un lien donné.

    Un modificateur saisi sur la sélection s'applique toujours; le champ de
    métadonnées n'est lu que si le lien affecte le prix (ou le poids).
    """
    price: Optional[Decimal] = None
    weight: Optional[int] = None
    if selection is not None and selection.price_modifier is not None:
        price = selection.price_modifier
    elif link.affects_pricing:
        price = metadata_modifier(option.meta, link.price_modifier_field, fields_by_name)
    if selection is not None and selection.weight_modifier_grams is not None:
        weight = selection.weight_modifier_grams
    elif link.affects_shipping:
        raw = metadata_modifier(option.meta, link.weight_modifier_field, fields_by_name)
        weight = int(raw.to_integral_value()) if raw is not None else None
    return price, weight


class AttributeResolver:
    """Construit la liste ordonnée des axes d'un produit à partir du catalogue."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_axes(self, product_id: int) -> List[ResolvedAxis]:
        """
        Retourne les axes éligibles du produit: attributs propres (par position)
        puis liens globaux (par position, puis id).

        Les axes sans option active sont écartés.

        Raises:
            ProductNotFoundException: Si le produit n'existe pas
            NoAttributesException: Si aucun axe ne possède d'option active
        """
        logger.debug(f"[AttributeResolver] Resolve axes for Product ID: {product_id}")
        if await self.db.get(Product, product_id) is None:
            raise ProductNotFoundException(product_id)

        axes = await self._product_axes(product_id) + await self._global_axes(product_id)
        eligible = []
        for axis in axes:
            if axis.options:
                eligible.append(axis)
            else:
                logger.warning(
                    f"[AttributeResolver] Axe '{axis.name}' ({axis.source.value} {axis.axis_id}) "
                    f"sans option active, ignoré pour le produit {product_id}."
                )
        if not eligible:
            raise NoAttributesException(product_id)
        return eligible

    async def _product_axes(self, product_id: int) -> List[ResolvedAxis]:
        stmt = (
            select(ProductAttribute)
            .where(ProductAttribute.product_id == product_id)
            .order_by(ProductAttribute.position, ProductAttribute.id)
        )
        attributes = list((await self.db.execute(stmt)).scalars().all())
        if not attributes:
            return []

        stmt = (
            select(AttributeOption)
            .where(
                AttributeOption.attribute_id.in_([a.id for a in attributes]),
                AttributeOption.is_active == True,  # noqa: E712
            )
            .order_by(AttributeOption.position, AttributeOption.id)
        )
        options_by_attribute: Dict[int, List[AttributeOption]] = defaultdict(list)
        for option in (await self.db.execute(stmt)).scalars().all():
            options_by_attribute[option.attribute_id].append(option)

        return [
            ResolvedAxis(
                source=AxisSource.ATTRIBUTE,
                axis_id=attribute.id,
                name=attribute.name,
                display_name=attribute.display_name,
                position=attribute.position,
                affects_pricing=attribute.affects_pricing,
                affects_shipping=attribute.affects_shipping,
                options=[
                    AxisOption(
                        source=AxisSource.ATTRIBUTE,
                        axis_id=attribute.id,
                        option_id=option.id,
                        value=option.value,
                        display_value=option.display_value,
                        price_modifier=option.price_modifier,
                        weight_modifier_grams=option.weight_modifier_grams,
                    )
                    for option in options_by_attribute[attribute.id]
                ],
            )
            for attribute in attributes
        ]

    async def _global_axes(self, product_id: int) -> List[ResolvedAxis]:
        stmt = (
            select(ProductGlobalAttributeLink)
            .where(ProductGlobalAttributeLink.product_id == product_id)
            .order_by(ProductGlobalAttributeLink.position, ProductGlobalAttributeLink.id)
        )
        links = list((await self.db.execute(stmt)).scalars().all())
        if not links:
            return []

        template_ids = {link.global_attribute_id for link in links}
        templates = await self._templates(template_ids)
        fields = await self._fields_by_template(template_ids)
        selections = await self._selections_by_link([link.id for link in links])

        stmt = (
            select(GlobalAttributeOption)
            .where(
                GlobalAttributeOption.global_attribute_id.in_(list(template_ids)),
                GlobalAttributeOption.is_active == True,  # noqa: E712
            )
            .order_by(GlobalAttributeOption.position, GlobalAttributeOption.id)
        )
        active_by_template: Dict[int, List[GlobalAttributeOption]] = defaultdict(list)
        for option in (await self.db.execute(stmt)).scalars().all():
            active_by_template[option.global_attribute_id].append(option)

        axes = []
        for link in links:
            template = templates[link.global_attribute_id]
            chosen: List[Tuple[GlobalAttributeOption, Optional[ProductGlobalOptionSelection]]] = []
            if template.is_active:
                active = active_by_template[link.global_attribute_id]
                link_selections = selections.get(link.id)
                if not link_selections:
                    # Aucune sélection: toutes les options actives du template
                    chosen = [(option, None) for option in active]
                else:
                    active_by_id = {option.id: option for option in active}
                    chosen = [
                        (active_by_id[s.global_option_id], s)
                        for s in link_selections
                        if s.global_option_id in active_by_id
                    ]
                    chosen.sort(key=lambda pair: (
                        pair[1].position_override if pair[1].position_override is not None else pair[0].position,
                        pair[0].position,
                        pair[0].id,
                    ))

            options = []
            for option, selection in chosen:
                price, weight = _global_modifiers(link, option, selection, fields[link.global_attribute_id])
                options.append(AxisOption(
                    source=AxisSource.GLOBAL_LINK,
                    axis_id=link.id,
                    option_id=option.id,
                    value=option.value,
                    display_value=option.display_value,
                    price_modifier=price,
                    weight_modifier_grams=weight,
                ))
            axes.append(ResolvedAxis(
                source=AxisSource.GLOBAL_LINK,
                axis_id=link.id,
                name=link.role_name,
                display_name=link.role_display_name,
                position=link.position,
                affects_pricing=link.affects_pricing,
                affects_shipping=link.affects_shipping,
                options=options,
            ))
        return axes

    async def resolve_variant_selections(self, variant_id: int) -> List[VariantSelection]:
        """
        Sélections d'une variante dans l'ordre des axes, sans filtre sur les
        options actives: une option désactivée reste portée par ses variantes.
        """
        logger.debug(f"[AttributeResolver] Resolve selections for Variant ID: {variant_id}")
        if await self.db.get(ProductVariant, variant_id) is None:
            raise VariantNotFoundException(variant_id)

        stmt = (
            select(ProductAttribute, AttributeOption)
            .join(ProductVariantOption, ProductVariantOption.attribute_id == ProductAttribute.id)
            .join(AttributeOption, AttributeOption.id == ProductVariantOption.option_id)
            .where(ProductVariantOption.variant_id == variant_id)
            .order_by(ProductAttribute.position, ProductAttribute.id)
        )
        result: List[VariantSelection] = [
            VariantSelection(
                source=AxisSource.ATTRIBUTE,
                axis_id=attribute.id,
                axis_name=attribute.name,
                axis_display_name=attribute.display_name,
                option_id=option.id,
                value=option.value,
                display_value=option.display_value,
                price_modifier=option.price_modifier,
                weight_modifier_grams=option.weight_modifier_grams,
            )
            for attribute, option in (await self.db.execute(stmt)).all()
        ]

        stmt = (
            select(ProductGlobalAttributeLink, GlobalAttributeOption)
            .join(ProductVariantGlobalOption, ProductVariantGlobalOption.link_id == ProductGlobalAttributeLink.id)
            .join(GlobalAttributeOption, GlobalAttributeOption.id == ProductVariantGlobalOption.global_option_id)
            .where(ProductVariantGlobalOption.variant_id == variant_id)
            .order_by(ProductGlobalAttributeLink.position, ProductGlobalAttributeLink.id)
        )
        rows = (await self.db.execute(stmt)).all()
        if not rows:
            return result

        fields = await self._fields_by_template({link.global_attribute_id for link, _ in rows})
        selections = await self._selections_by_link([link.id for link, _ in rows])
        for link, option in rows:
            selection = next(
                (s for s in selections.get(link.id, []) if s.global_option_id == option.id), None
            )
            price, weight = _global_modifiers(link, option, selection, fields[link.global_attribute_id])
            result.append(VariantSelection(
                source=AxisSource.GLOBAL_LINK,
                axis_id=link.id,
                axis_name=link.role_name,
                axis_display_name=link.role_display_name,
                option_id=option.id,
                value=option.value,
                display_value=option.display_value,
                price_modifier=price,
                weight_modifier_grams=weight,
            ))
        return result

    async def _templates(self, template_ids) -> Dict[int, GlobalAttribute]:
        stmt = select(GlobalAttribute).where(GlobalAttribute.id.in_(list(template_ids)))
        return {t.id: t for t in (await self.db.execute(stmt)).scalars().all()}

    async def _fields_by_template(self, template_ids) -> Dict[int, Dict[str, GlobalAttributeMetadataField]]:
        stmt = select(GlobalAttributeMetadataField).where(
            GlobalAttributeMetadataField.global_attribute_id.in_(list(template_ids))
        )
        fields: Dict[int, Dict[str, GlobalAttributeMetadataField]] = defaultdict(dict)
        for field in (await self.db.execute(stmt)).scalars().all():
            fields[field.global_attribute_id][field.field_name] = field
        return fields

    async def _selections_by_link(self, link_ids) -> Dict[int, List[ProductGlobalOptionSelection]]:
        stmt = (
            select(ProductGlobalOptionSelection)
            .where(ProductGlobalOptionSelection.link_id.in_(list(link_ids)))
            .order_by(ProductGlobalOptionSelection.id)
        )
        selections: Dict[int, List[ProductGlobalOptionSelection]] = defaultdict(list)
        for selection in (await self.db.execute(stmt)).scalars().all():
            selections[selection.link_id].append(selection)
        return selections
