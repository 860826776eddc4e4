import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from fastcrud import FastCRUD
from sqlalchemy import delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from configurator.config import settings
from configurator.core.schemas import PaginatedResponse
from configurator.bom.models import ProductBomEntry, OptionBomEntry, VariantBomOverride
from . import crud as material_crud
from .constants import (
    UNIT_OF_MEASURES,
    MOVEMENT_TYPES,
    MOVEMENT_ADJUSTMENT,
    STOCK_STATUS_AVAILABLE,
    STOCK_STATUS_LOW,
    STOCK_STATUS_OUT,
)
from .models import (
    RawMaterial, RawMaterialCreate, RawMaterialRead, RawMaterialUpdate,
    RawMaterialMovement,
)
from .exceptions import (
    MaterialNotFoundException,
    DuplicateMaterialSKUException,
    InvalidUnitOfMeasureException,
    InvalidStockMovementError,
    MaterialInUseException,
)

logger = logging.getLogger(__name__)


class PaginatedMaterialResponse(PaginatedResponse[RawMaterialRead]):
    pass


def stock_status(material: RawMaterial) -> str:
    """Statut de stock d'une matière: OUT, LOW ou AVAILABLE."""
    if material.stock_quantity <= 0:
        return STOCK_STATUS_OUT
    if material.stock_quantity <= material.low_stock_threshold:
        return STOCK_STATUS_LOW
    return STOCK_STATUS_AVAILABLE


class RawMaterialService:
    """Service applicatif pour les matières premières et leur stock."""

    def __init__(self, db: AsyncSession, material_crud_fc: FastCRUD):
        self.db = db
        self.material_fc = material_crud_fc
        logger.info("RawMaterialService initialisé.")

    async def get_material(self, material_id: int) -> RawMaterial:
        logger.debug(f"[RawMaterialService] Get material ID: {material_id}")
        material = await material_crud.get_material(self.db, material_id)
        if not material:
            raise MaterialNotFoundException(material_id)
        return material

    async def list_materials(
        self,
        limit: Optional[int] = None,
        offset: int = 0,
        active_only: bool = False,
    ) -> PaginatedMaterialResponse:
        limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        logger.debug(f"[RawMaterialService] List materials limit={limit}, offset={offset}, active_only={active_only}")
        filters = {"is_active": True} if active_only else {}
        result = await self.material_fc.get_multi(
            self.db,
            offset=offset,
            limit=limit,
            schema_to_select=RawMaterialRead,
            return_as_model=True,
            sort_columns="id",
            **filters,
        )
        return PaginatedMaterialResponse(items=result["data"], total=result["total_count"])

    async def create_material(self, material_data: RawMaterialCreate) -> RawMaterial:
        logger.info(f"[RawMaterialService] Create material: {material_data.sku}")
        if material_data.unit_of_measure not in UNIT_OF_MEASURES:
            raise InvalidUnitOfMeasureException(material_data.unit_of_measure)
        if material_data.stock_quantity < 0:
            raise InvalidStockMovementError("le stock initial ne peut pas être négatif")
        if await self.material_fc.exists(self.db, sku=material_data.sku):
            raise DuplicateMaterialSKUException(material_data.sku)

        material = RawMaterial.model_validate(material_data)
        self.db.add(material)
        await self.db.commit()
        await self.db.refresh(material)
        return material

    async def update_material(self, material_id: int, material_data: RawMaterialUpdate) -> RawMaterial:
        """Met à jour une matière. Le stock se modifie uniquement via adjust_stock/set_stock."""
        logger.info(f"[RawMaterialService] Update material ID: {material_id}")
        material = await self.get_material(material_id)
        update_data = material_data.model_dump(exclude_unset=True)

        if "unit_of_measure" in update_data and update_data["unit_of_measure"] not in UNIT_OF_MEASURES:
            raise InvalidUnitOfMeasureException(update_data["unit_of_measure"])
        new_sku = update_data.get("sku")
        if new_sku and new_sku != material.sku and await self.material_fc.exists(self.db, sku=new_sku):
            raise DuplicateMaterialSKUException(new_sku)

        for key, value in update_data.items():
            setattr(material, key, value)
        await self.db.commit()
        await self.db.refresh(material)
        return material

    async def count_references(self, material_id: int) -> int:
        """Nombre de lignes de nomenclature (toutes couches) référençant la matière."""
        total = 0
        for stmt in (
            select(func.count(ProductBomEntry.id)).where(ProductBomEntry.raw_material_id == material_id),
            select(func.count(OptionBomEntry.id)).where(OptionBomEntry.raw_material_id == material_id),
            select(func.count(VariantBomOverride.id)).where(or_(
                VariantBomOverride.raw_material_id == material_id,
                VariantBomOverride.replaces_material_id == material_id,
            )),
        ):
            total += (await self.db.execute(stmt)).scalar_one()
        return total

    async def delete_material(self, material_id: int) -> None:
        logger.info(f"[RawMaterialService] Delete material ID: {material_id}")
        material = await self.get_material(material_id)
        references = await self.count_references(material_id)
        if references:
            raise MaterialInUseException(material_id, references)
        await self.db.execute(delete(RawMaterialMovement).where(RawMaterialMovement.raw_material_id == material_id))
        await self.db.delete(material)
        await self.db.commit()

    # --- Stock ---

    async def adjust_stock(
        self,
        material_id: int,
        quantity_change: Decimal,
        movement_type: str = MOVEMENT_ADJUSTMENT,
        notes: Optional[str] = None,
    ) -> RawMaterial:
        """Applique une variation (positive ou négative) et journalise le mouvement."""
        logger.info(f"[RawMaterialService] Adjust stock of material ID {material_id} by {quantity_change} ({movement_type})")
        if movement_type not in MOVEMENT_TYPES:
            raise InvalidStockMovementError(f"type '{movement_type}' inconnu")
        if quantity_change == 0:
            raise InvalidStockMovementError("la variation ne peut pas être nulle")

        material, _ = await material_crud.adjust_stock_quantity(
            self.db, material_id, Decimal(quantity_change), movement_type, notes
        )
        await self.db.commit()
        await self.db.refresh(material)
        return material

    async def set_stock(self, material_id: int, quantity: Decimal, notes: Optional[str] = None) -> RawMaterial:
        """Fixe le stock à une valeur absolue (inventaire)."""
        if quantity < 0:
            raise InvalidStockMovementError("le stock ne peut pas être négatif")
        material = await self.get_material(material_id)
        delta = Decimal(quantity) - Decimal(material.stock_quantity)
        if delta == 0:
            return material
        return await self.adjust_stock(material_id, delta, MOVEMENT_ADJUSTMENT, notes)

    async def list_movements(self, material_id: int) -> List[RawMaterialMovement]:
        await self.get_material(material_id)
        return await material_crud.list_movements(self.db, material_id)

    async def get_stock_snapshot(self, material_ids: Optional[Iterable[int]] = None) -> Dict[int, Decimal]:
        """Stock courant par matière, pour le calcul de productibilité."""
        return await material_crud.get_stock_snapshot(self.db, material_ids)

    async def get_materials_by_ids(self, material_ids: Iterable[int]) -> Dict[int, RawMaterial]:
        return await material_crud.get_materials_by_ids(self.db, material_ids)

    async def list_low_stock(self, limit: Optional[int] = None, offset: int = 0) -> PaginatedMaterialResponse:
        limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        materials, total = await material_crud.list_low_stock(self.db, limit=limit, offset=offset)
        return PaginatedMaterialResponse(
            items=[RawMaterialRead.model_validate(m) for m in materials],
            total=total,
        )
