from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from configurator.database import get_db_session
from .interfaces.repositories import AbstractProductVariantRepository
from .repositories import SQLAlchemyProductVariantRepository
from .service import ProductVariantService


def get_variant_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)]
) -> AbstractProductVariantRepository:
    """
    Fournit le repository des variantes de produits.

    Args:
        session: Session de base de données asynchrone

    Returns:
        AbstractProductVariantRepository: Implémentation SQLAlchemy du repository
    """
    return SQLAlchemyProductVariantRepository(session)

VariantRepositoryDep = Annotated[AbstractProductVariantRepository, Depends(get_variant_repository)]


def get_variant_service(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    variant_repo: VariantRepositoryDep,
) -> ProductVariantService:
    """
    Fournit une instance du service de gestion des variantes de produits.

    Args:
        db: Session de base de données asynchrone
        variant_repo: Repository des variantes (partage la même session)

    Returns:
        ProductVariantService: Instance du service de gestion des variantes
    """
    return ProductVariantService(db=db, variant_repo=variant_repo)

VariantServiceDep = Annotated[ProductVariantService, Depends(get_variant_service)]
