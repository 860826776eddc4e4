from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from .models import RawMaterial, RawMaterialMovement
from .exceptions import MaterialNotFoundException, InsufficientMaterialStockError

logger = logging.getLogger(__name__)


async def get_material(db: AsyncSession, material_id: int) -> Optional[RawMaterial]:
    """Récupère une matière première par ID (None si absente)."""
    return await db.get(RawMaterial, material_id)


async def get_materials_by_ids(db: AsyncSession, material_ids: Iterable[int]) -> Dict[int, RawMaterial]:
    """Matières premières indexées par ID; les IDs inconnus sont simplement absents."""
    ids = list(set(material_ids))
    if not ids:
        return {}
    result = await db.execute(select(RawMaterial).where(RawMaterial.id.in_(ids)))
    return {m.id: m for m in result.scalars().all()}


async def get_stock_snapshot(db: AsyncSession, material_ids: Optional[Iterable[int]] = None) -> Dict[int, Decimal]:
    """Photographie du stock: {material_id: quantité}."""
    stmt = select(RawMaterial.id, RawMaterial.stock_quantity)
    if material_ids is not None:
        ids = list(set(material_ids))
        if not ids:
            return {}
        stmt = stmt.where(RawMaterial.id.in_(ids))
    result = await db.execute(stmt)
    return {material_id: Decimal(quantity) for material_id, quantity in result.all()}


async def adjust_stock_quantity(
    db: AsyncSession,
    material_id: int,
    quantity_change: Decimal,
    movement_type: str,
    notes: Optional[str] = None,
) -> Tuple[RawMaterial, RawMaterialMovement]:
    """Applique une variation de stock et journalise le mouvement (flush, sans commit).

    Lève MaterialNotFoundException si la matière n'existe pas.
    Lève InsufficientMaterialStockError si le stock deviendrait négatif.
    """
    material = await get_material(db, material_id)
    if not material:
        raise MaterialNotFoundException(material_id)

    before = Decimal(material.stock_quantity)
    after = before + quantity_change
    if after < 0:
        logger.error(f"Stock insuffisant pour la matière {material_id}. Demandé: {-quantity_change}, Disponible: {before}")
        raise InsufficientMaterialStockError(material_id, -quantity_change, before)

    material.stock_quantity = after
    movement = RawMaterialMovement(
        raw_material_id=material_id,
        movement_type=movement_type,
        quantity_change=quantity_change,
        quantity_before=before,
        quantity_after=after,
        notes=notes,
    )
    db.add(movement)
    await db.flush()
    logger.info(f"Stock matière {material_id} mis à jour: {before} -> {after} ({movement_type}).")
    return material, movement


async def list_low_stock(db: AsyncSession, limit: int = 50, offset: int = 0) -> Tuple[List[RawMaterial], int]:
    """Matières actives dont le stock est inférieur ou égal à leur seuil d'alerte."""
    condition = (RawMaterial.stock_quantity <= RawMaterial.low_stock_threshold) & (RawMaterial.is_active == True)  # noqa: E712
    total = await db.scalar(select(func.count(RawMaterial.id)).where(condition))
    query = (
        select(RawMaterial)
        .where(condition)
        .order_by(RawMaterial.stock_quantity.asc(), RawMaterial.id)
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(query)
    return list(result.scalars().all()), total or 0


async def list_movements(db: AsyncSession, material_id: int) -> List[RawMaterialMovement]:
    result = await db.execute(
        select(RawMaterialMovement)
        .where(RawMaterialMovement.raw_material_id == material_id)
        .order_by(RawMaterialMovement.id)
    )
    return list(result.scalars().all())
