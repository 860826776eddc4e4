from typing import Optional
from decimal import Decimal
from datetime import datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from configurator.core.schemas import utcnow

ATTRIBUTE_TYPES = ("select", "color_swatch", "button_group", "image_swatch")

# --- Modèle ProductAttribute SQLModel (axe propre au produit) ---

class ProductAttributeBase(SQLModel):
    name: str = Field(max_length=100)
    display_name: str = Field(max_length=255)
    attribute_type: str = Field(default="select", max_length=20)
    position: int = Field(default=0)
    affects_pricing: bool = Field(default=False)
    affects_shipping: bool = Field(default=False)

class ProductAttribute(ProductAttributeBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="products.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: Optional[datetime] = Field(default=None, sa_column_kwargs={"onupdate": utcnow})

    __tablename__ = "product_attributes"
    __table_args__ = (UniqueConstraint("product_id", "name", name="uq_product_attribute_name"),)

class ProductAttributeCreate(ProductAttributeBase):
    pass

class ProductAttributeRead(ProductAttributeBase):
    id: int
    product_id: int

class ProductAttributeUpdate(SQLModel):
    name: Optional[str] = None
    display_name: Optional[str] = None
    attribute_type: Optional[str] = None
    position: Optional[int] = None
    affects_pricing: Optional[bool] = None
    affects_shipping: Optional[bool] = None


# --- Modèle AttributeOption SQLModel ---

class AttributeOptionBase(SQLModel):
    value: str = Field(max_length=100)
    display_value: str = Field(max_length=255)
    color_hex: Optional[str] = Field(default=None, max_length=7)
    image_url: Optional[str] = Field(default=None, max_length=500)
    price_modifier: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    weight_modifier_grams: Optional[int] = Field(default=None)
    position: int = Field(default=0)
    is_active: bool = Field(default=True)

class AttributeOption(AttributeOptionBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    attribute_id: int = Field(foreign_key="product_attributes.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)

    __tablename__ = "product_attribute_options"
    __table_args__ = (UniqueConstraint("attribute_id", "value", name="uq_attribute_option_value"),)

class AttributeOptionCreate(AttributeOptionBase):
    pass

class AttributeOptionRead(AttributeOptionBase):
    id: int
    attribute_id: int

class AttributeOptionUpdate(SQLModel):
    value: Optional[str] = None
    display_value: Optional[str] = None
    color_hex: Optional[str] = None
    image_url: Optional[str] = None
    price_modifier: Optional[Decimal] = None
    weight_modifier_grams: Optional[int] = None
    position: Optional[int] = None
    is_active: Optional[bool] = None
