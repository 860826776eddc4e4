from typing import Optional, List, Dict, Any
from decimal import Decimal
from datetime import datetime

from sqlalchemy import JSON, UniqueConstraint
from sqlmodel import SQLModel, Field

from configurator.core.schemas import utcnow

# --- Modèle GlobalAttribute SQLModel (template partagé entre produits) ---

class GlobalAttributeBase(SQLModel):
    name: str = Field(unique=True, index=True, max_length=100)
    display_name: str = Field(max_length=255)
    description: Optional[str] = Field(default=None)
    attribute_type: str = Field(default="select", max_length=20)
    category: Optional[str] = Field(default=None, index=True, max_length=100)
    position: int = Field(default=0)
    is_active: bool = Field(default=True, index=True)

class GlobalAttribute(GlobalAttributeBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: Optional[datetime] = Field(default=None, sa_column_kwargs={"onupdate": utcnow})

    __tablename__ = "global_attributes"

class GlobalAttributeCreate(GlobalAttributeBase):
    pass

class GlobalAttributeRead(GlobalAttributeBase):
    id: int

class GlobalAttributeUpdate(SQLModel):
    name: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None
    attribute_type: Optional[str] = None
    category: Optional[str] = None
    position: Optional[int] = None
    is_active: Optional[bool] = None


# --- Champs de métadonnées (schéma du template) ---

class MetadataFieldBase(SQLModel):
    field_name: str = Field(max_length=100)
    display_name: str = Field(max_length=255)
    field_type: str = Field(default="text", max_length=20)
    is_required: bool = Field(default=False)
    default_value: Optional[str] = Field(default=None)
    select_options: Optional[List[str]] = Field(default=None, sa_type=JSON)
    help_text: Optional[str] = Field(default=None)
    position: int = Field(default=0)

class GlobalAttributeMetadataField(MetadataFieldBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    global_attribute_id: int = Field(foreign_key="global_attributes.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)

    __tablename__ = "global_attribute_metadata_fields"
    __table_args__ = (UniqueConstraint("global_attribute_id", "field_name", name="uq_metadata_field_name"),)

class MetadataFieldCreate(MetadataFieldBase):
    pass

class MetadataFieldRead(MetadataFieldBase):
    id: int
    global_attribute_id: int

class MetadataFieldUpdate(SQLModel):
    display_name: Optional[str] = None
    field_type: Optional[str] = None
    is_required: Optional[bool] = None
    default_value: Optional[str] = None
    select_options: Optional[List[str]] = None
    help_text: Optional[str] = None
    position: Optional[int] = None


# --- Options du template ---

class GlobalOptionBase(SQLModel):
    value: str = Field(max_length=100)
    display_value: str = Field(max_length=255)
    color_hex: Optional[str] = Field(default=None, max_length=7)
    image_url: Optional[str] = Field(default=None, max_length=500)
    # 'metadata' est réservé par SQLAlchemy sur les classes déclaratives
    meta: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    position: int = Field(default=0)
    is_active: bool = Field(default=True)

class GlobalAttributeOption(GlobalOptionBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    global_attribute_id: int = Field(foreign_key="global_attributes.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: Optional[datetime] = Field(default=None, sa_column_kwargs={"onupdate": utcnow})

    __tablename__ = "global_attribute_options"
    __table_args__ = (UniqueConstraint("global_attribute_id", "value", name="uq_global_option_value"),)

class GlobalOptionCreate(GlobalOptionBase):
    pass

class GlobalOptionRead(GlobalOptionBase):
    id: int
    global_attribute_id: int

class GlobalOptionUpdate(SQLModel):
    value: Optional[str] = None
    display_value: Optional[str] = None
    color_hex: Optional[str] = None
    image_url: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None
    position: Optional[int] = None
    is_active: Optional[bool] = None


# --- Lien produit <-> template sous un rôle ---

class GlobalAttributeLinkBase(SQLModel):
    global_attribute_id: int = Field(foreign_key="global_attributes.id", index=True)
    role_name: str = Field(max_length=100)
    role_display_name: str = Field(max_length=255)
    position: int = Field(default=0)
    affects_pricing: bool = Field(default=False)
    affects_shipping: bool = Field(default=False)
    price_modifier_field: Optional[str] = Field(default=None, max_length=100)
    weight_modifier_field: Optional[str] = Field(default=None, max_length=100)

class ProductGlobalAttributeLink(GlobalAttributeLinkBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="products.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)

    __tablename__ = "product_global_attribute_links"
    __table_args__ = (
        UniqueConstraint("product_id", "global_attribute_id", "role_name", name="uq_link_role"),
    )

class GlobalAttributeLinkCreate(GlobalAttributeLinkBase):
    pass

class GlobalAttributeLinkRead(GlobalAttributeLinkBase):
    id: int
    product_id: int

class GlobalAttributeLinkUpdate(SQLModel):
    role_display_name: Optional[str] = None
    position: Optional[int] = None
    affects_pricing: Optional[bool] = None
    affects_shipping: Optional[bool] = None
    price_modifier_field: Optional[str] = None
    weight_modifier_field: Optional[str] = None


# --- Sélection d'options pour un lien (filtre) ---

class OptionSelectionBase(SQLModel):
    global_option_id: int = Field(foreign_key="global_attribute_options.id", index=True)
    price_modifier: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    weight_modifier_grams: Optional[int] = Field(default=None)
    position_override: Optional[int] = Field(default=None)

class ProductGlobalOptionSelection(OptionSelectionBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    link_id: int = Field(foreign_key="product_global_attribute_links.id", index=True)

    __tablename__ = "product_global_option_selections"
    __table_args__ = (UniqueConstraint("link_id", "global_option_id", name="uq_link_option_selection"),)

class OptionSelectionCreate(OptionSelectionBase):
    pass

class OptionSelectionRead(OptionSelectionBase):
    id: int
    link_id: int
