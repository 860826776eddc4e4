from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from configurator.database import get_db_session
from .service import BomService


def get_bom_service(db: Annotated[AsyncSession, Depends(get_db_session)]) -> BomService:
    """
    Fournit une instance du service des nomenclatures.

    Args:
        db: Session de base de données asynchrone

    Returns:
        BomService: Couches de nomenclature, résolution et productibilité
    """
    return BomService(db=db)

BomServiceDep = Annotated[BomService, Depends(get_bom_service)]
