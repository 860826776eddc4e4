from typing import Optional
from decimal import Decimal
from datetime import datetime

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import SQLModel, Field

from configurator.config import settings
from configurator.core.schemas import utcnow

# Une ligne d'option référence soit une option propre au produit, soit une option globale
_ONE_OPTION_REFERENCE = "(option_id IS NULL) <> (global_option_id IS NULL)"

# --- Couche 1: nomenclature de base du produit ---

class ProductBomEntryBase(SQLModel):
    raw_material_id: int = Field(foreign_key="raw_materials.id", index=True)
    quantity: Decimal = Field(max_digits=12, decimal_places=4)
    unit_of_measure: str = Field(default=settings.DEFAULT_UNIT_OF_MEASURE, max_length=10)
    is_required: bool = Field(default=True)
    notes: Optional[str] = Field(default=None)

class ProductBomEntry(ProductBomEntryBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="products.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)

    __tablename__ = "product_bom_entries"
    __table_args__ = (UniqueConstraint("product_id", "raw_material_id", name="uq_product_bom_material"),)

class ProductBomEntryCreate(ProductBomEntryBase):
    pass

class ProductBomEntryRead(ProductBomEntryBase):
    id: int
    product_id: int

class ProductBomEntryUpdate(SQLModel):
    quantity: Optional[Decimal] = None
    unit_of_measure: Optional[str] = None
    is_required: Optional[bool] = None
    notes: Optional[str] = None


# --- Couche 2a: matières ajoutées par une option ---

class OptionBomEntryBase(SQLModel):
    option_id: Optional[int] = Field(default=None, foreign_key="product_attribute_options.id", index=True)
    global_option_id: Optional[int] = Field(default=None, foreign_key="global_attribute_options.id", index=True)
    raw_material_id: int = Field(foreign_key="raw_materials.id", index=True)
    quantity: Decimal = Field(max_digits=12, decimal_places=4)
    unit_of_measure: str = Field(default=settings.DEFAULT_UNIT_OF_MEASURE, max_length=10)
    notes: Optional[str] = Field(default=None)

class OptionBomEntry(OptionBomEntryBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)

    __tablename__ = "option_bom_entries"
    __table_args__ = (CheckConstraint(_ONE_OPTION_REFERENCE, name="ck_option_bom_entry_reference"),)

class OptionBomEntryCreate(OptionBomEntryBase):
    pass

class OptionBomEntryRead(OptionBomEntryBase):
    id: int


# --- Couche 2b: modificateurs d'une option sur une ligne de base ---

class OptionBomModifierBase(SQLModel):
    option_id: Optional[int] = Field(default=None, foreign_key="product_attribute_options.id", index=True)
    global_option_id: Optional[int] = Field(default=None, foreign_key="global_attribute_options.id", index=True)
    product_bom_entry_id: int = Field(foreign_key="product_bom_entries.id", index=True)
    modifier_type: str = Field(max_length=20)  # multiply|add|set
    modifier_value: Decimal = Field(max_digits=12, decimal_places=4)
    notes: Optional[str] = Field(default=None)

class OptionBomModifier(OptionBomModifierBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)

    __tablename__ = "option_bom_modifiers"
    __table_args__ = (CheckConstraint(_ONE_OPTION_REFERENCE, name="ck_option_bom_modifier_reference"),)

class OptionBomModifierCreate(OptionBomModifierBase):
    pass

class OptionBomModifierRead(OptionBomModifierBase):
    id: int


# --- Couche 3: surcharges par variante ---

class VariantBomOverrideBase(SQLModel):
    raw_material_id: int = Field(foreign_key="raw_materials.id", index=True)
    override_type: str = Field(max_length=20)  # replace|add|remove|set_quantity
    replaces_material_id: Optional[int] = Field(default=None, foreign_key="raw_materials.id")
    quantity: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=4)
    unit_of_measure: Optional[str] = Field(default=None, max_length=10)
    notes: Optional[str] = Field(default=None)

class VariantBomOverride(VariantBomOverrideBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    variant_id: int = Field(foreign_key="product_variants.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)

    __tablename__ = "variant_bom_overrides"

class VariantBomOverrideCreate(VariantBomOverrideBase):
    pass

class VariantBomOverrideRead(VariantBomOverrideBase):
    id: int
    variant_id: int
