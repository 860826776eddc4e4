import logging
from typing import Optional

from fastcrud import FastCRUD
from sqlalchemy.ext.asyncio import AsyncSession

from configurator.config import settings
from .models import Product, ProductCreate, ProductUpdate
from .exceptions import ProductNotFoundException, DuplicateSlugException

logger = logging.getLogger(__name__)


def default_sku_prefix(product: Product) -> str:
    """Préfixe SKU du produit, ou les premiers caractères du nom en majuscules."""
    if product.sku_prefix:
        return product.sku_prefix
    return product.name[:settings.SKU_ABBREVIATION_LENGTH].upper()


class ProductService:
    """Service applicatif pour la gestion des produits."""

    def __init__(self, db: AsyncSession, product_crud: FastCRUD):
        self.db = db
        self.product_crud = product_crud
        logger.info("ProductService initialized.")

    async def get_product(self, product_id: int) -> Product:
        """Récupère un produit par ID ou lève ProductNotFoundException."""
        logger.debug(f"[ProductService] Get Product ID: {product_id}")
        product = await self.db.get(Product, product_id)
        if product is None:
            raise ProductNotFoundException(product_id)
        return product

    async def product_exists(self, product_id: int) -> bool:
        return await self.product_crud.exists(self.db, id=product_id)

    async def create_product(self, product_data: ProductCreate) -> Product:
        """Crée un nouveau produit."""
        logger.info(f"[ProductService] Create Product: {product_data.name}")
        if product_data.slug and await self.product_crud.exists(self.db, slug=product_data.slug):
            raise DuplicateSlugException(product_data.slug)

        product = Product.model_validate(product_data)
        self.db.add(product)
        await self.db.commit()
        await self.db.refresh(product)
        logger.info(f"[ProductService] Product ID {product.id} created.")
        return product

    async def update_product(self, product_id: int, product_data: ProductUpdate) -> Product:
        """Met à jour les champs fournis d'un produit."""
        logger.info(f"[ProductService] Update Product ID: {product_id}")
        product = await self.get_product(product_id)
        update_data = product_data.model_dump(exclude_unset=True)

        new_slug: Optional[str] = update_data.get("slug")
        if new_slug and new_slug != product.slug and await self.product_crud.exists(self.db, slug=new_slug):
            raise DuplicateSlugException(new_slug)

        for key, value in update_data.items():
            setattr(product, key, value)
        await self.db.commit()
        await self.db.refresh(product)
        return product

    async def get_sku_prefix(self, product_id: int) -> str:
        product = await self.get_product(product_id)
        return default_sku_prefix(product)
