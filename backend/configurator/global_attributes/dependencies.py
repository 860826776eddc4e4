from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from configurator.database import get_db_session
from .service import GlobalAttributeService


def get_global_attribute_service(
    db: Annotated[AsyncSession, Depends(get_db_session)]
) -> GlobalAttributeService:
    """
    Fournit une instance du service des attributs globaux.

    Args:
        db: Session de base de données asynchrone

    Returns:
        GlobalAttributeService: Templates, options, liens et sélections
    """
    return GlobalAttributeService(db=db)

GlobalAttributeServiceDep = Annotated[GlobalAttributeService, Depends(get_global_attribute_service)]
