import logging
from typing import List, Optional

from fastcrud import FastCRUD
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from configurator.attributes.models import ATTRIBUTE_TYPES
from configurator.attributes.exceptions import InvalidAttributeTypeException
from configurator.products.models import Product
from configurator.products.exceptions import ProductNotFoundException
from configurator.product_variants.models import ProductVariantGlobalOption
from .constants import FIELD_TYPE_NUMBER
from .metadata import validate_field_definition, validate_option_metadata
from .models import (
    GlobalAttribute, GlobalAttributeCreate, GlobalAttributeUpdate,
    GlobalAttributeMetadataField, MetadataFieldCreate, MetadataFieldUpdate,
    GlobalAttributeOption, GlobalOptionCreate, GlobalOptionUpdate,
    ProductGlobalAttributeLink, GlobalAttributeLinkCreate, GlobalAttributeLinkUpdate,
    ProductGlobalOptionSelection, OptionSelectionCreate,
)
from .exceptions import (
    GlobalAttributeNotFoundException,
    GlobalOptionNotFoundException,
    MetadataFieldNotFoundException,
    LinkNotFoundException,
    DuplicateGlobalAttributeException,
    InvalidMetadataFieldException,
    InvalidSelectionException,
    GlobalAttributeInUseException,
    GlobalOptionInUseException,
    LinkInUseException,
)

logger = logging.getLogger(__name__)


class GlobalAttributeService:
    """
    Gestion des attributs globaux: templates, schéma de métadonnées, options,
    liens produit (sous un rôle) et sélections d'options par lien.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.template_crud = FastCRUD(GlobalAttribute)
        self.field_crud = FastCRUD(GlobalAttributeMetadataField)
        self.option_crud = FastCRUD(GlobalAttributeOption)
        self.link_crud = FastCRUD(ProductGlobalAttributeLink)
        self.variant_option_crud = FastCRUD(ProductVariantGlobalOption)

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def get_template(self, global_attribute_id: int) -> GlobalAttribute:
        template = await self.db.get(GlobalAttribute, global_attribute_id)
        if template is None:
            raise GlobalAttributeNotFoundException(global_attribute_id)
        return template

    async def list_templates(self, category: Optional[str] = None, active_only: bool = False) -> List[GlobalAttribute]:
        logger.debug(f"[GlobalAttributeService] List templates (category={category}, active_only={active_only})")
        stmt = select(GlobalAttribute)
        if category is not None:
            stmt = stmt.where(GlobalAttribute.category == category)
        if active_only:
            stmt = stmt.where(GlobalAttribute.is_active == True)  # noqa: E712
        stmt = stmt.order_by(GlobalAttribute.position, GlobalAttribute.name)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_template(self, template_data: GlobalAttributeCreate) -> GlobalAttribute:
        logger.info(f"[GlobalAttributeService] Create template: {template_data.name}")
        if template_data.attribute_type not in ATTRIBUTE_TYPES:
            raise InvalidAttributeTypeException(template_data.attribute_type)
        if await self.template_crud.exists(self.db, name=template_data.name):
            raise DuplicateGlobalAttributeException("Attribut global", template_data.name)

        template = GlobalAttribute.model_validate(template_data)
        self.db.add(template)
        await self.db.commit()
        await self.db.refresh(template)
        return template

    async def update_template(self, global_attribute_id: int, template_data: GlobalAttributeUpdate) -> GlobalAttribute:
        logger.info(f"[GlobalAttributeService] Update template ID: {global_attribute_id}")
        template = await self.get_template(global_attribute_id)
        update_data = template_data.model_dump(exclude_unset=True)

        if "attribute_type" in update_data and update_data["attribute_type"] not in ATTRIBUTE_TYPES:
            raise InvalidAttributeTypeException(update_data["attribute_type"])
        new_name = update_data.get("name")
        if new_name and new_name != template.name and await self.template_crud.exists(self.db, name=new_name):
            raise DuplicateGlobalAttributeException("Attribut global", new_name)

        for key, value in update_data.items():
            setattr(template, key, value)
        await self.db.commit()
        await self.db.refresh(template)
        return template

    async def count_usage(self, global_attribute_id: int) -> int:
        """Nombre de produits distincts liés au template."""
        stmt = select(func.count(func.distinct(ProductGlobalAttributeLink.product_id))).where(
            ProductGlobalAttributeLink.global_attribute_id == global_attribute_id
        )
        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def list_products_using(self, global_attribute_id: int) -> List[Product]:
        stmt = (
            select(Product)
            .join(ProductGlobalAttributeLink, ProductGlobalAttributeLink.product_id == Product.id)
            .where(ProductGlobalAttributeLink.global_attribute_id == global_attribute_id)
            .distinct()
            .order_by(Product.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def delete_template(self, global_attribute_id: int) -> None:
        """Supprime un template inutilisé avec son schéma et ses options."""
        logger.info(f"[GlobalAttributeService] Delete template ID: {global_attribute_id}")
        await self.get_template(global_attribute_id)
        usage = await self.count_usage(global_attribute_id)
        if usage:
            raise GlobalAttributeInUseException(global_attribute_id, usage)

        await self.db.execute(
            delete(GlobalAttributeOption).where(GlobalAttributeOption.global_attribute_id == global_attribute_id)
        )
        await self.db.execute(
            delete(GlobalAttributeMetadataField).where(
                GlobalAttributeMetadataField.global_attribute_id == global_attribute_id
            )
        )
        await self.db.execute(delete(GlobalAttribute).where(GlobalAttribute.id == global_attribute_id))
        await self.db.commit()

    # ------------------------------------------------------------------
    # Champs de métadonnées
    # ------------------------------------------------------------------

    async def list_fields(self, global_attribute_id: int) -> List[GlobalAttributeMetadataField]:
        stmt = (
            select(GlobalAttributeMetadataField)
            .where(GlobalAttributeMetadataField.global_attribute_id == global_attribute_id)
            .order_by(GlobalAttributeMetadataField.position, GlobalAttributeMetadataField.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_field(self, field_id: int) -> GlobalAttributeMetadataField:
        field = await self.db.get(GlobalAttributeMetadataField, field_id)
        if field is None:
            raise MetadataFieldNotFoundException(field_id)
        return field

    async def create_field(self, global_attribute_id: int, field_data: MetadataFieldCreate) -> GlobalAttributeMetadataField:
        logger.info(f"[GlobalAttributeService] Create metadata field '{field_data.field_name}' on template ID: {global_attribute_id}")
        await self.get_template(global_attribute_id)
        validate_field_definition(field_data)
        if await self.field_crud.exists(
            self.db, global_attribute_id=global_attribute_id, field_name=field_data.field_name
        ):
            raise DuplicateGlobalAttributeException("Champ de métadonnées", field_data.field_name)

        field = GlobalAttributeMetadataField(**field_data.model_dump(), global_attribute_id=global_attribute_id)
        self.db.add(field)
        await self.db.commit()
        await self.db.refresh(field)
        return field

    async def update_field(self, field_id: int, field_data: MetadataFieldUpdate) -> GlobalAttributeMetadataField:
        logger.info(f"[GlobalAttributeService] Update metadata field ID: {field_id}")
        field = await self.get_field(field_id)
        merged = MetadataFieldCreate(
            **{**MetadataFieldCreate.model_validate(field).model_dump(), **field_data.model_dump(exclude_unset=True)}
        )
        validate_field_definition(merged)

        for key, value in field_data.model_dump(exclude_unset=True).items():
            setattr(field, key, value)
        await self.db.commit()
        await self.db.refresh(field)
        return field

    async def delete_field(self, field_id: int) -> None:
        logger.info(f"[GlobalAttributeService] Delete metadata field ID: {field_id}")
        field = await self.get_field(field_id)
        await self.db.delete(field)
        await self.db.commit()

    # ------------------------------------------------------------------
    # Options du template
    # ------------------------------------------------------------------

    async def get_option(self, global_option_id: int) -> GlobalAttributeOption:
        option = await self.db.get(GlobalAttributeOption, global_option_id)
        if option is None:
            raise GlobalOptionNotFoundException(global_option_id)
        return option

    async def list_options(self, global_attribute_id: int, active_only: bool = False) -> List[GlobalAttributeOption]:
        stmt = select(GlobalAttributeOption).where(GlobalAttributeOption.global_attribute_id == global_attribute_id)
        if active_only:
            stmt = stmt.where(GlobalAttributeOption.is_active == True)  # noqa: E712
        stmt = stmt.order_by(GlobalAttributeOption.position, GlobalAttributeOption.id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_options(self, global_attribute_id: int) -> int:
        return await self.option_crud.count(self.db, global_attribute_id=global_attribute_id)

    async def create_option(self, global_attribute_id: int, option_data: GlobalOptionCreate) -> GlobalAttributeOption:
        logger.info(f"[GlobalAttributeService] Create option '{option_data.value}' on template ID: {global_attribute_id}")
        await self.get_template(global_attribute_id)
        if await self.option_crud.exists(self.db, global_attribute_id=global_attribute_id, value=option_data.value):
            raise DuplicateGlobalAttributeException("Option globale", option_data.value)

        meta = validate_option_metadata(await self.list_fields(global_attribute_id), option_data.meta)
        option = GlobalAttributeOption(
            **option_data.model_dump(exclude={"meta"}),
            meta=meta,
            global_attribute_id=global_attribute_id,
        )
        self.db.add(option)
        await self.db.commit()
        await self.db.refresh(option)
        return option

    async def update_option(self, global_option_id: int, option_data: GlobalOptionUpdate) -> GlobalAttributeOption:
        logger.info(f"[GlobalAttributeService] Update global option ID: {global_option_id}")
        option = await self.get_option(global_option_id)
        update_data = option_data.model_dump(exclude_unset=True)

        new_value = update_data.get("value")
        if new_value and new_value != option.value and await self.option_crud.exists(
            self.db, global_attribute_id=option.global_attribute_id, value=new_value
        ):
            raise DuplicateGlobalAttributeException("Option globale", new_value)
        if "meta" in update_data:
            fields = await self.list_fields(option.global_attribute_id)
            update_data["meta"] = validate_option_metadata(fields, update_data["meta"])

        for key, value in update_data.items():
            setattr(option, key, value)
        await self.db.commit()
        await self.db.refresh(option)
        return option

    async def delete_option(self, global_option_id: int) -> None:
        logger.info(f"[GlobalAttributeService] Delete global option ID: {global_option_id}")
        option = await self.get_option(global_option_id)
        used_by = await self.variant_option_crud.count(self.db, global_option_id=global_option_id)
        if used_by:
            raise GlobalOptionInUseException(global_option_id, used_by)

        await self.db.execute(
            delete(ProductGlobalOptionSelection).where(
                ProductGlobalOptionSelection.global_option_id == global_option_id
            )
        )
        await self.db.delete(option)
        await self.db.commit()

    # ------------------------------------------------------------------
    # Liens produit <-> template
    # ------------------------------------------------------------------

    async def get_link(self, link_id: int) -> ProductGlobalAttributeLink:
        link = await self.db.get(ProductGlobalAttributeLink, link_id)
        if link is None:
            raise LinkNotFoundException(link_id)
        return link

    async def list_links(self, product_id: int) -> List[ProductGlobalAttributeLink]:
        stmt = (
            select(ProductGlobalAttributeLink)
            .where(ProductGlobalAttributeLink.product_id == product_id)
            .order_by(ProductGlobalAttributeLink.position, ProductGlobalAttributeLink.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _check_modifier_fields(
        self,
        global_attribute_id: int,
        price_field: Optional[str],
        weight_field: Optional[str],
    ) -> None:
        """Les champs modificateurs d'un lien doivent exister dans le schéma et être numériques."""
        wanted = [name for name in (price_field, weight_field) if name]
        if not wanted:
            return
        fields = {f.field_name: f for f in await self.list_fields(global_attribute_id)}
        for name in wanted:
            field = fields.get(name)
            if field is None:
                raise InvalidMetadataFieldException(name, f"absent du schéma de l'attribut global {global_attribute_id}")
            if field.field_type != FIELD_TYPE_NUMBER:
                raise InvalidMetadataFieldException(name, "un modificateur doit être un champ 'number'")

    async def create_link(self, product_id: int, link_data: GlobalAttributeLinkCreate) -> ProductGlobalAttributeLink:
        """Lie un template à un produit sous un rôle. Un même template peut être lié sous plusieurs rôles."""
        logger.info(
            f"[GlobalAttributeService] Link template ID {link_data.global_attribute_id} "
            f"to Product ID {product_id} as '{link_data.role_name}'"
        )
        if await self.db.get(Product, product_id) is None:
            raise ProductNotFoundException(product_id)
        await self.get_template(link_data.global_attribute_id)
        if await self.link_crud.exists(
            self.db,
            product_id=product_id,
            global_attribute_id=link_data.global_attribute_id,
            role_name=link_data.role_name,
        ):
            raise DuplicateGlobalAttributeException("Rôle", link_data.role_name)
        await self._check_modifier_fields(
            link_data.global_attribute_id, link_data.price_modifier_field, link_data.weight_modifier_field
        )

        link = ProductGlobalAttributeLink(**link_data.model_dump(), product_id=product_id)
        self.db.add(link)
        await self.db.commit()
        await self.db.refresh(link)
        return link

    async def update_link(self, link_id: int, link_data: GlobalAttributeLinkUpdate) -> ProductGlobalAttributeLink:
        logger.info(f"[GlobalAttributeService] Update link ID: {link_id}")
        link = await self.get_link(link_id)
        update_data = link_data.model_dump(exclude_unset=True)
        await self._check_modifier_fields(
            link.global_attribute_id,
            update_data.get("price_modifier_field", link.price_modifier_field),
            update_data.get("weight_modifier_field", link.weight_modifier_field),
        )

        for key, value in update_data.items():
            setattr(link, key, value)
        await self.db.commit()
        await self.db.refresh(link)
        return link

    async def delete_link(self, link_id: int) -> None:
        logger.info(f"[GlobalAttributeService] Delete link ID: {link_id}")
        link = await self.get_link(link_id)
        used_by = await self.variant_option_crud.count(self.db, link_id=link_id)
        if used_by:
            raise LinkInUseException(link_id, used_by)

        await self.db.execute(
            delete(ProductGlobalOptionSelection).where(ProductGlobalOptionSelection.link_id == link_id)
        )
        await self.db.delete(link)
        await self.db.commit()

    # ------------------------------------------------------------------
    # Sélections d'options par lien
    # ------------------------------------------------------------------

    async def list_selections(self, link_id: int) -> List[ProductGlobalOptionSelection]:
        stmt = (
            select(ProductGlobalOptionSelection)
            .where(ProductGlobalOptionSelection.link_id == link_id)
            .order_by(ProductGlobalOptionSelection.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def set_selections(
        self,
        link_id: int,
        selections: List[OptionSelectionCreate],
    ) -> List[ProductGlobalOptionSelection]:
        """
        Remplace toutes les sélections d'un lien en une seule transaction.

        Une liste vide signifie « toutes les options actives du template ».
        """
        logger.info(f"[GlobalAttributeService] Set {len(selections)} selection(s) for link ID: {link_id}")
        link = await self.get_link(link_id)

        wanted_ids = [s.global_option_id for s in selections]
        if wanted_ids:
            stmt = select(GlobalAttributeOption.id).where(
                GlobalAttributeOption.id.in_(wanted_ids),
                GlobalAttributeOption.global_attribute_id == link.global_attribute_id,
            )
            valid_ids = set((await self.db.execute(stmt)).scalars().all())
            for option_id in wanted_ids:
                if option_id not in valid_ids:
                    raise InvalidSelectionException(link_id, option_id)
            if len(set(wanted_ids)) != len(wanted_ids):
                duplicated = next(i for i in wanted_ids if wanted_ids.count(i) > 1)
                raise DuplicateGlobalAttributeException("Sélection", str(duplicated))

        await self.db.execute(
            delete(ProductGlobalOptionSelection).where(ProductGlobalOptionSelection.link_id == link_id)
        )
        created = []
        for selection_data in selections:
            selection = ProductGlobalOptionSelection(**selection_data.model_dump(), link_id=link_id)
            self.db.add(selection)
            created.append(selection)
        await self.db.commit()
        return created
