"""Enregistre toutes les tables sur SQLModel.metadata (création du schéma, tests)."""
from configurator.products.models import Product  # noqa: F401
from configurator.attributes.models import ProductAttribute, AttributeOption  # noqa: F401
from configurator.global_attributes.models import (  # noqa: F401
    GlobalAttribute,
    GlobalAttributeMetadataField,
    GlobalAttributeOption,
    ProductGlobalAttributeLink,
    ProductGlobalOptionSelection,
)
from configurator.product_variants.models import (  # noqa: F401
    ProductVariant,
    ProductVariantOption,
    ProductVariantGlobalOption,
)
from configurator.raw_materials.models import RawMaterial, RawMaterialMovement  # noqa: F401
from configurator.bom.models import (  # noqa: F401
    ProductBomEntry,
    OptionBomEntry,
    OptionBomModifier,
    VariantBomOverride,
)
