import logging
from typing import List

from fastcrud import FastCRUD
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from configurator.products.models import Product
from configurator.products.exceptions import ProductNotFoundException
from configurator.product_variants.models import ProductVariantOption
from .models import (
    ATTRIBUTE_TYPES,
    ProductAttribute, ProductAttributeCreate, ProductAttributeUpdate,
    AttributeOption, AttributeOptionCreate, AttributeOptionUpdate,
)
from .exceptions import (
    AttributeNotFoundException,
    OptionNotFoundException,
    DuplicateAttributeNameException,
    DuplicateOptionValueException,
    InvalidAttributeTypeException,
    AttributeInUseException,
)

logger = logging.getLogger(__name__)


class AttributeService:
    """Gestion des attributs propres à un produit et de leurs options."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.attribute_crud = FastCRUD(ProductAttribute)
        self.option_crud = FastCRUD(AttributeOption)
        self.variant_option_crud = FastCRUD(ProductVariantOption)

    # --- Attributs ---

    async def get_attribute(self, attribute_id: int) -> ProductAttribute:
        attribute = await self.db.get(ProductAttribute, attribute_id)
        if attribute is None:
            raise AttributeNotFoundException(attribute_id)
        return attribute

    async def list_attributes(self, product_id: int) -> List[ProductAttribute]:
        logger.debug(f"[AttributeService] List attributes for Product ID: {product_id}")
        stmt = (
            select(ProductAttribute)
            .where(ProductAttribute.product_id == product_id)
            .order_by(ProductAttribute.position, ProductAttribute.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_attribute(self, product_id: int, attribute_data: ProductAttributeCreate) -> ProductAttribute:
        logger.info(f"[AttributeService] Create attribute '{attribute_data.name}' for Product ID: {product_id}")
        if await self.db.get(Product, product_id) is None:
            raise ProductNotFoundException(product_id)
        if attribute_data.attribute_type not in ATTRIBUTE_TYPES:
            raise InvalidAttributeTypeException(attribute_data.attribute_type)
        if await self.attribute_crud.exists(self.db, product_id=product_id, name=attribute_data.name):
            raise DuplicateAttributeNameException(product_id, attribute_data.name)

        attribute = ProductAttribute(**attribute_data.model_dump(), product_id=product_id)
        self.db.add(attribute)
        await self.db.commit()
        await self.db.refresh(attribute)
        return attribute

    async def update_attribute(self, attribute_id: int, attribute_data: ProductAttributeUpdate) -> ProductAttribute:
        logger.info(f"[AttributeService] Update attribute ID: {attribute_id}")
        attribute = await self.get_attribute(attribute_id)
        update_data = attribute_data.model_dump(exclude_unset=True)

        if "attribute_type" in update_data and update_data["attribute_type"] not in ATTRIBUTE_TYPES:
            raise InvalidAttributeTypeException(update_data["attribute_type"])
        new_name = update_data.get("name")
        if new_name and new_name != attribute.name and await self.attribute_crud.exists(
            self.db, product_id=attribute.product_id, name=new_name
        ):
            raise DuplicateAttributeNameException(attribute.product_id, new_name)

        for key, value in update_data.items():
            setattr(attribute, key, value)
        await self.db.commit()
        await self.db.refresh(attribute)
        return attribute

    async def delete_attribute(self, attribute_id: int) -> None:
        """Supprime un attribut et ses options, sauf s'il est référencé par des variantes."""
        logger.info(f"[AttributeService] Delete attribute ID: {attribute_id}")
        attribute = await self.get_attribute(attribute_id)
        used_by = await self.variant_option_crud.count(self.db, attribute_id=attribute_id)
        if used_by:
            raise AttributeInUseException("l'attribut", attribute_id, used_by)

        await self.db.execute(delete(AttributeOption).where(AttributeOption.attribute_id == attribute_id))
        await self.db.delete(attribute)
        await self.db.commit()

    # --- Options ---

    async def get_option(self, option_id: int) -> AttributeOption:
        option = await self.db.get(AttributeOption, option_id)
        if option is None:
            raise OptionNotFoundException(option_id)
        return option

    async def list_options(self, attribute_id: int, active_only: bool = False) -> List[AttributeOption]:
        stmt = select(AttributeOption).where(AttributeOption.attribute_id == attribute_id)
        if active_only:
            stmt = stmt.where(AttributeOption.is_active == True)  # noqa: E712
        stmt = stmt.order_by(AttributeOption.position, AttributeOption.id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_option(self, attribute_id: int, option_data: AttributeOptionCreate) -> AttributeOption:
        logger.info(f"[AttributeService] Create option '{option_data.value}' for attribute ID: {attribute_id}")
        await self.get_attribute(attribute_id)
        if await self.option_crud.exists(self.db, attribute_id=attribute_id, value=option_data.value):
            raise DuplicateOptionValueException(attribute_id, option_data.value)

        option = AttributeOption(**option_data.model_dump(), attribute_id=attribute_id)
        self.db.add(option)
        await self.db.commit()
        await self.db.refresh(option)
        return option

    async def update_option(self, option_id: int, option_data: AttributeOptionUpdate) -> AttributeOption:
        logger.info(f"[AttributeService] Update option ID: {option_id}")
        option = await self.get_option(option_id)
        update_data = option_data.model_dump(exclude_unset=True)

        new_value = update_data.get("value")
        if new_value and new_value != option.value and await self.option_crud.exists(
            self.db, attribute_id=option.attribute_id, value=new_value
        ):
            raise DuplicateOptionValueException(option.attribute_id, new_value)

        for key, value in update_data.items():
            setattr(option, key, value)
        await self.db.commit()
        await self.db.refresh(option)
        return option

    async def set_option_active(self, option_id: int, is_active: bool) -> AttributeOption:
        """Active/désactive une option. Les variantes existantes ne sont pas modifiées."""
        logger.info(f"[AttributeService] Set option ID {option_id} is_active={is_active}")
        return await self.update_option(option_id, AttributeOptionUpdate(is_active=is_active))

    async def delete_option(self, option_id: int) -> None:
        logger.info(f"[AttributeService] Delete option ID: {option_id}")
        option = await self.get_option(option_id)
        used_by = await self.variant_option_crud.count(self.db, option_id=option_id)
        if used_by:
            raise AttributeInUseException("l'option", option_id, used_by)
        await self.db.delete(option)
        await self.db.commit()
