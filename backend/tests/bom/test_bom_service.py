"""
Tests du service des nomenclatures: couches en base, résolution d'une variante et productibilité.
"""
import pytest
import pytest_asyncio
from decimal import Decimal

from configurator.attributes.models import ProductAttributeCreate, AttributeOptionCreate
from configurator.global_attributes.models import GlobalAttributeCreate, GlobalOptionCreate, GlobalAttributeLinkCreate
from configurator.raw_materials.models import RawMaterialCreate
from configurator.bom.models import (
    ProductBomEntryCreate,
    ProductBomEntryUpdate,
    OptionBomEntryCreate,
    OptionBomModifierCreate,
    VariantBomOverrideCreate,
)
from configurator.bom.exceptions import (
    BomEntryNotFoundException,
    DuplicateBomEntryException,
    InvalidBomOperationException,
    NegativeQuantityException,
)
from configurator.raw_materials.exceptions import MaterialNotFoundException
from configurator.product_variants.models import ProductVariantCreate
from configurator.product_variants.exceptions import VariantNotFoundException


async def make_material(material_service, sku, unit, stock):
    material = await material_service.create_material(
        RawMaterialCreate(name=sku.lower(), sku=sku, unit_of_measure=unit, stock_quantity=Decimal(stock))
    )
    return material.id


@pytest_asyncio.fixture
async def bag(attribute_service, material_service, bom_service, variant_service, test_bag):
    """
    Sac: base {cuir 2 m, boucle laiton 1}, Couleur (Black / Brown) x Taille (Large, cuir x1.4).
    Variantes générées: BAG-BLA-LAR et BAG-BRO-LAR.
    """
    product_id = test_bag.id
    leather = await make_material(material_service, "LEATHER", "m", "10")
    buckle = await make_material(material_service, "BRASS-BUCKLE", "unit", "5")
    antique = await make_material(material_service, "ANTIQUE-BUCKLE", "unit", "0")

    leather_entry = await bom_service.add_base_entry(
        product_id, ProductBomEntryCreate(raw_material_id=leather, quantity=Decimal("2"), unit_of_measure="m")
    )
    await bom_service.add_base_entry(
        product_id, ProductBomEntryCreate(raw_material_id=buckle, quantity=Decimal("1"), unit_of_measure="unit")
    )

    color = await attribute_service.create_attribute(product_id, ProductAttributeCreate(name="color", display_name="Color"))
    black = await attribute_service.create_option(color.id, AttributeOptionCreate(value="black", display_value="Black"))
    await attribute_service.create_option(color.id, AttributeOptionCreate(value="brown", display_value="Brown", position=1))
    size = await attribute_service.create_attribute(
        product_id, ProductAttributeCreate(name="size", display_name="Size", position=1)
    )
    large = await attribute_service.create_option(size.id, AttributeOptionCreate(value="large", display_value="Large"))
    await bom_service.add_option_modifier(OptionBomModifierCreate(
        option_id=large.id, product_bom_entry_id=leather_entry.id, modifier_type="multiply", modifier_value=Decimal("1.4"),
    ))

    variants = {v.sku: v.id for v in await variant_service.generate_variants(product_id)}
    return {
        "product_id": product_id,
        "leather": leather,
        "buckle": buckle,
        "antique": antique,
        "leather_entry": leather_entry.id,
        "black": black.id,
        "large": large.id,
        "black_large": variants["BAG-BLA-LAR"],
        "brown_large": variants["BAG-BRO-LAR"],
    }


@pytest.mark.asyncio
async def test_option_modifier_layer(bom_service, bag):
    """Black/Large: cuir 2 m x 1.4 = 2.8 m, la couleur n'ajoute rien."""
    bom = await bom_service.resolve_variant_bom(bag["black_large"])
    assert bom.as_mapping() == {
        bag["leather"]: (Decimal("2.8"), "m"),
        bag["buckle"]: (Decimal("1"), "unit"),
    }


@pytest.mark.asyncio
async def test_variant_replace_override(bom_service, bag):
    """Brown/Large: la boucle laiton est remplacée par la boucle vieillie."""
    await bom_service.add_variant_override(
        bag["brown_large"],
        VariantBomOverrideCreate(
            override_type="replace",
            raw_material_id=bag["antique"],
            replaces_material_id=bag["buckle"],
            quantity=Decimal("1"),
        ),
    )
    bom = await bom_service.resolve_variant_bom(bag["brown_large"])
    assert bag["buckle"] not in bom.lines
    assert bom.lines[bag["antique"]].quantity == Decimal("1")
    assert bom.lines[bag["leather"]].quantity == Decimal("2.8")

    # Les autres variantes ne sont pas touchées
    other = await bom_service.resolve_variant_bom(bag["black_large"])
    assert bag["buckle"] in other.lines


@pytest.mark.asyncio
async def test_option_addition_layer(bom_service, material_service, bag):
    thread = await make_material(material_service, "BLACK-THREAD", "m", "100")
    await bom_service.add_option_entry(
        OptionBomEntryCreate(option_id=bag["black"], raw_material_id=thread, quantity=Decimal("12"), unit_of_measure="m")
    )
    bom = await bom_service.resolve_variant_bom(bag["black_large"])
    assert bom.lines[thread].quantity == Decimal("12")
    assert thread not in (await bom_service.resolve_variant_bom(bag["brown_large"])).lines
    assert len(await bom_service.list_option_entries(option_id=bag["black"])) == 1


@pytest.mark.asyncio
async def test_producibility(bom_service, bag):
    """Black/Large: min(floor(10 / 2.8), floor(5 / 1)) = 3, limité par le cuir."""
    result = await bom_service.get_variant_producibility(bag["black_large"])
    assert result.sku == "BAG-BLA-LAR"
    assert result.producibility.units == 3
    assert result.producibility.limiting_material_ids == [bag["leather"]]

    await bom_service.add_variant_override(
        bag["brown_large"],
        VariantBomOverrideCreate(
            override_type="replace", raw_material_id=bag["antique"], replaces_material_id=bag["buckle"], quantity=Decimal("1"),
        ),
    )
    results = await bom_service.list_product_producibility(bag["product_id"])
    assert [(r.sku, r.producibility.units) for r in results] == [("BAG-BLA-LAR", 3), ("BAG-BRO-LAR", 0)]


@pytest.mark.asyncio
async def test_variant_without_bom_is_unbounded(variant_service, bom_service, test_product):
    variant = await variant_service.create_variant(test_product.id, ProductVariantCreate(sku="TSH-LIBRE"))
    result = await bom_service.get_variant_producibility(variant.id)
    assert result.producibility.is_unbounded is True
    assert result.producibility.units is None


@pytest.mark.asyncio
async def test_global_option_under_two_roles_counts_twice(global_service, material_service, bom_service, variant_service, test_product):
    """Une option globale retenue sous deux rôles applique ses couches deux fois."""
    product_id = test_product.id
    dye = await make_material(material_service, "DYE-BLACK", "ml", "100")
    template = await global_service.create_template(GlobalAttributeCreate(name="teinte", display_name="Teinte"))
    black = await global_service.create_option(template.id, GlobalOptionCreate(value="noir", display_value="Noir"))
    for index, role in enumerate(["corps", "manches"]):
        await global_service.create_link(
            product_id,
            GlobalAttributeLinkCreate(
                global_attribute_id=template.id, role_name=role, role_display_name=role.capitalize(), position=index
            ),
        )
    await bom_service.add_option_entry(
        OptionBomEntryCreate(global_option_id=black.id, raw_material_id=dye, quantity=Decimal("15"), unit_of_measure="ml")
    )

    created = await variant_service.generate_variants(product_id)
    bom = await bom_service.resolve_variant_bom(created[0].id)
    assert bom.lines[dye].quantity == Decimal("30")


@pytest.mark.asyncio
async def test_base_entry_management(bom_service, bag):
    product_id = bag["product_id"]
    with pytest.raises(DuplicateBomEntryException):
        await bom_service.add_base_entry(
            product_id, ProductBomEntryCreate(raw_material_id=bag["leather"], quantity=Decimal("1"), unit_of_measure="m")
        )
    with pytest.raises(MaterialNotFoundException):
        await bom_service.add_base_entry(product_id, ProductBomEntryCreate(raw_material_id=999, quantity=Decimal("1")))
    with pytest.raises(NegativeQuantityException):
        await bom_service.update_base_entry(bag["leather_entry"], ProductBomEntryUpdate(quantity=Decimal("-1")))

    entry = await bom_service.update_base_entry(bag["leather_entry"], ProductBomEntryUpdate(quantity=Decimal("2.5")))
    assert entry.quantity == Decimal("2.5")

    # La suppression d'une ligne de base emporte ses modificateurs
    await bom_service.delete_base_entry(bag["leather_entry"])
    assert await bom_service.list_option_modifiers(option_id=bag["large"]) == []
    with pytest.raises(BomEntryNotFoundException):
        await bom_service.get_base_entry(bag["leather_entry"])
    bom = await bom_service.resolve_variant_bom(bag["black_large"])
    assert bag["leather"] not in bom.lines


@pytest.mark.asyncio
async def test_layer_validation(bom_service, attribute_service, test_product, bag):
    other_attribute = await attribute_service.create_attribute(
        test_product.id, ProductAttributeCreate(name="taille", display_name="Taille")
    )
    other_option = await attribute_service.create_option(
        other_attribute.id, AttributeOptionCreate(value="s", display_value="S")
    )

    with pytest.raises(InvalidBomOperationException):
        await bom_service.add_option_modifier(OptionBomModifierCreate(
            option_id=other_option.id, product_bom_entry_id=bag["leather_entry"], modifier_type="multiply", modifier_value=Decimal("2"),
        ))
    with pytest.raises(InvalidBomOperationException):
        await bom_service.add_option_modifier(OptionBomModifierCreate(
            option_id=bag["large"], product_bom_entry_id=bag["leather_entry"], modifier_type="divide", modifier_value=Decimal("2"),
        ))
    with pytest.raises(InvalidBomOperationException):
        await bom_service.add_option_entry(OptionBomEntryCreate(raw_material_id=bag["leather"], quantity=Decimal("1")))
    with pytest.raises(InvalidBomOperationException):
        await bom_service.add_variant_override(
            bag["black_large"], VariantBomOverrideCreate(override_type="set_quantity", raw_material_id=bag["leather"])
        )
    with pytest.raises(InvalidBomOperationException):
        await bom_service.add_variant_override(
            bag["black_large"],
            VariantBomOverrideCreate(override_type="replace", raw_material_id=bag["antique"], quantity=Decimal("1")),
        )
    with pytest.raises(VariantNotFoundException):
        await bom_service.resolve_variant_bom(999)


@pytest.mark.asyncio
async def test_override_lifecycle(bom_service, bag):
    override = await bom_service.add_variant_override(
        bag["black_large"], VariantBomOverrideCreate(override_type="remove", raw_material_id=bag["buckle"])
    )
    assert bag["buckle"] not in (await bom_service.resolve_variant_bom(bag["black_large"])).lines

    await bom_service.delete_variant_override(override.id)
    assert await bom_service.list_variant_overrides(bag["black_large"]) == []
    assert bag["buckle"] in (await bom_service.resolve_variant_bom(bag["black_large"])).lines
