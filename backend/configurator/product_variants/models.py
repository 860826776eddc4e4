from typing import Optional, List
from decimal import Decimal
from datetime import datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from configurator.config import settings
from configurator.core.schemas import utcnow

# --- Modèles de jonction Variante <-> Options ---

class ProductVariantOption(SQLModel, table=True):
    """Option propre au produit retenue par une variante (une ligne par attribut)."""
    variant_id: Optional[int] = Field(
        default=None, foreign_key="product_variants.id", primary_key=True
    )
    attribute_id: Optional[int] = Field(
        default=None, foreign_key="product_attributes.id", primary_key=True
    )
    option_id: int = Field(foreign_key="product_attribute_options.id", index=True)
    __tablename__ = "product_variant_options"


class ProductVariantGlobalOption(SQLModel, table=True):
    """Option globale retenue par une variante pour un lien (rôle) donné."""
    variant_id: Optional[int] = Field(
        default=None, foreign_key="product_variants.id", primary_key=True
    )
    link_id: Optional[int] = Field(
        default=None, foreign_key="product_global_attribute_links.id", primary_key=True
    )
    global_option_id: int = Field(foreign_key="global_attribute_options.id", index=True)
    __tablename__ = "product_variant_global_options"

# --- Fin Modèles de jonction ---


# --- Modèle ProductVariant SQLModel ---

class ProductVariantBase(SQLModel):
    sku: str = Field(index=True, unique=True, max_length=100)
    # NULL = calculé (prix de base + modificateurs des options)
    price: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    compare_at_price: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    # NULL = calculé (poids de base + modificateurs des options)
    weight_grams: Optional[int] = Field(default=None)
    stock_quantity: int = Field(default=0)
    low_stock_threshold: int = Field(default=settings.DEFAULT_LOW_STOCK_THRESHOLD)
    barcode: Optional[str] = Field(default=None, max_length=100)
    is_active: bool = Field(default=True, index=True)
    position: int = Field(default=0)

class ProductVariant(ProductVariantBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="products.id", index=True)
    # Clé canonique de la combinaison d'options (NULL pour une variante sans option)
    combination_key: Optional[str] = Field(default=None, max_length=1000)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: Optional[datetime] = Field(default=None, sa_column_kwargs={"onupdate": utcnow})

    __tablename__ = "product_variants"
    __table_args__ = (
        UniqueConstraint("product_id", "combination_key", name="uq_variant_combination"),
    )


# Schémas API pour ProductVariant

class VariantOptionSelection(SQLModel):
    """Une sélection d'axe pour une variante créée manuellement."""
    attribute_id: Optional[int] = None
    option_id: Optional[int] = None
    link_id: Optional[int] = None
    global_option_id: Optional[int] = None

class ProductVariantCreate(ProductVariantBase):
    selections: List[VariantOptionSelection] = []

class ProductVariantRead(ProductVariantBase):
    id: int
    product_id: int
    combination_key: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

class ProductVariantUpdate(SQLModel):
    sku: Optional[str] = None
    price: Optional[Decimal] = None
    compare_at_price: Optional[Decimal] = None
    weight_grams: Optional[int] = None
    stock_quantity: Optional[int] = None
    low_stock_threshold: Optional[int] = None
    barcode: Optional[str] = None
    is_active: Optional[bool] = None
    position: Optional[int] = None

class ProductVariantWithOptions(ProductVariantRead):
    """Variante enrichie de son libellé d'options et de ses valeurs effectives."""
    options_label: str = ""
    effective_price: Decimal
    effective_weight_grams: int

# --- Fin Modèle ProductVariant SQLModel ---
