from typing import Optional
from decimal import Decimal
from datetime import datetime

from sqlmodel import SQLModel, Field

from configurator.config import settings
from configurator.core.schemas import utcnow

# --- Modèle RawMaterial ---

class RawMaterialBase(SQLModel):
    name: str = Field(max_length=255)
    sku: str = Field(index=True, unique=True, max_length=100)
    description: Optional[str] = Field(default=None)
    unit_of_measure: str = Field(default=settings.DEFAULT_UNIT_OF_MEASURE, max_length=10)
    cost_per_unit: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=4)
    stock_quantity: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=4)
    low_stock_threshold: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=4)
    supplier_name: Optional[str] = Field(default=None, max_length=255)
    is_active: bool = Field(default=True, index=True)

class RawMaterial(RawMaterialBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: Optional[datetime] = Field(default=None, sa_column_kwargs={"onupdate": utcnow})

    __tablename__ = "raw_materials"

class RawMaterialCreate(RawMaterialBase):
    pass

class RawMaterialRead(RawMaterialBase):
    id: int

class RawMaterialUpdate(SQLModel):
    name: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    unit_of_measure: Optional[str] = None
    cost_per_unit: Optional[Decimal] = None
    low_stock_threshold: Optional[Decimal] = None
    supplier_name: Optional[str] = None
    is_active: Optional[bool] = None

# --- Modèle RawMaterialMovement (historique des ajustements) ---

class RawMaterialMovementBase(SQLModel):
    movement_type: str = Field(max_length=50)
    quantity_change: Decimal = Field(max_digits=12, decimal_places=4)
    notes: Optional[str] = Field(default=None)

class RawMaterialMovement(RawMaterialMovementBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    raw_material_id: int = Field(foreign_key="raw_materials.id", index=True)
    quantity_before: Decimal = Field(max_digits=12, decimal_places=4)
    quantity_after: Decimal = Field(max_digits=12, decimal_places=4)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)

    __tablename__ = "raw_material_movements"

class RawMaterialMovementCreate(RawMaterialMovementBase):
    pass

class RawMaterialMovementRead(RawMaterialMovementBase):
    id: int
    raw_material_id: int
    quantity_before: Decimal
    quantity_after: Decimal
    created_at: datetime

# --- Fin Modèles RawMaterial ---
