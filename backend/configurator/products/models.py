from typing import Optional
from decimal import Decimal
from datetime import datetime

from sqlmodel import SQLModel, Field

from configurator.core.schemas import utcnow

# --- Modèle Product SQLModel ---

class ProductBase(SQLModel):
    name: str = Field(index=True, max_length=255)
    slug: Optional[str] = Field(default=None, index=True, unique=True, max_length=255)
    description: Optional[str] = Field(default=None)
    status: str = Field(default="draft", max_length=20)  # draft|active|archived
    sku_prefix: Optional[str] = Field(default=None, max_length=50)
    base_price: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    base_weight_grams: int = Field(default=0)
    has_variants: bool = Field(default=False)

class Product(ProductBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: Optional[datetime] = Field(default=None, sa_column_kwargs={"onupdate": utcnow})

    __tablename__ = "products"

# Schémas API pour Product
class ProductCreate(ProductBase):
    pass

class ProductRead(ProductBase):
    id: int
    created_at: datetime
    updated_at: Optional[datetime] = None

class ProductUpdate(SQLModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    sku_prefix: Optional[str] = None
    base_price: Optional[Decimal] = None
    base_weight_grams: Optional[int] = None
    has_variants: Optional[bool] = None

# --- Fin Modèle Product SQLModel ---
