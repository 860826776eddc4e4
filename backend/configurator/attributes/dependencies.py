from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from configurator.database import get_db_session
from .resolver import AttributeResolver
from .service import AttributeService


def get_attribute_service(db: Annotated[AsyncSession, Depends(get_db_session)]) -> AttributeService:
    """Fournit le service des attributs propres aux produits."""
    return AttributeService(db=db)

AttributeServiceDep = Annotated[AttributeService, Depends(get_attribute_service)]


def get_attribute_resolver(db: Annotated[AsyncSession, Depends(get_db_session)]) -> AttributeResolver:
    return AttributeResolver(db)

AttributeResolverDep = Annotated[AttributeResolver, Depends(get_attribute_resolver)]
