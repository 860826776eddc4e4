from typing import Annotated

from fastapi import Depends
from fastcrud import FastCRUD
from sqlalchemy.ext.asyncio import AsyncSession

from configurator.database import get_db_session
from .models import RawMaterial
from .service import RawMaterialService


def get_material_crud() -> FastCRUD:
    """Fournit une instance de FastCRUD pour les matières premières."""
    return FastCRUD(RawMaterial)

MaterialCRUDDep = Annotated[FastCRUD, Depends(get_material_crud)]


def get_raw_material_service(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    material_crud: MaterialCRUDDep,
) -> RawMaterialService:
    """
    Fournit une instance du service des matières premières.

    Args:
        db: Session de base de données asynchrone
        material_crud: Instance de FastCRUD pour les matières premières

    Returns:
        RawMaterialService: Instance du service matières premières
    """
    return RawMaterialService(db=db, material_crud_fc=material_crud)

RawMaterialServiceDep = Annotated[RawMaterialService, Depends(get_raw_material_service)]
