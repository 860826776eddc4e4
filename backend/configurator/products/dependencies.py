from typing import Annotated

from fastapi import Depends
from fastcrud import FastCRUD
from sqlalchemy.ext.asyncio import AsyncSession

from configurator.database import get_db_session
from .models import Product
from .service import ProductService


def get_product_crud() -> FastCRUD:
    """Fournit une instance de FastCRUD pour les produits."""
    return FastCRUD(Product)

ProductCRUDDep = Annotated[FastCRUD, Depends(get_product_crud)]


def get_product_service(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    product_crud: ProductCRUDDep,
) -> ProductService:
    """
    Fournit une instance du service de gestion des produits.

    Args:
        db: Session de base de données asynchrone
        product_crud: Instance de FastCRUD pour les produits

    Returns:
        ProductService: Instance du service produits
    """
    return ProductService(db=db, product_crud=product_crud)

ProductServiceDep = Annotated[ProductService, Depends(get_product_service)]
