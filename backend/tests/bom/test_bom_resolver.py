"""
Tests de la résolution pure des nomenclatures (sans base de données).
"""
import pytest
from decimal import Decimal

from configurator.bom.entities import BomOperationKind, SelectedOptionBom
from configurator.bom.models import ProductBomEntry, OptionBomEntry, OptionBomModifier, VariantBomOverride
from configurator.bom.resolver import BomResolver, compile_operations
from configurator.bom.exceptions import (
    InvalidBomOperationException,
    MaterialNotFoundException,
    NegativeQuantityException,
)

FABRIC, THREAD, LINEN, BUTTON = 1, 2, 3, 4
UNITS = {FABRIC: "m", THREAD: "m", LINEN: "m", BUTTON: "unit"}


def base(entry_id, material_id, quantity, is_required=True):
    return ProductBomEntry(
        id=entry_id,
        product_id=1,
        raw_material_id=material_id,
        quantity=Decimal(quantity),
        unit_of_measure=UNITS[material_id],
        is_required=is_required,
    )


def modifier(modifier_id, entry_id, modifier_type, value):
    return OptionBomModifier(
        id=modifier_id,
        option_id=10,
        product_bom_entry_id=entry_id,
        modifier_type=modifier_type,
        modifier_value=Decimal(value),
    )


def addition(entry_id, material_id, quantity):
    return OptionBomEntry(
        id=entry_id,
        option_id=10,
        raw_material_id=material_id,
        quantity=Decimal(quantity),
        unit_of_measure=UNITS[material_id],
    )


def override(override_id, override_type, material_id, quantity=None, replaces=None):
    return VariantBomOverride(
        id=override_id,
        variant_id=1,
        override_type=override_type,
        raw_material_id=material_id,
        quantity=Decimal(quantity) if quantity is not None else None,
        replaces_material_id=replaces,
    )


@pytest.fixture
def resolver():
    return BomResolver()


def test_base_layer_only(resolver):
    """La couche 1 seule donne les lignes de base."""
    bom = resolver.resolve([base(1, FABRIC, "2"), base(2, THREAD, "50")], [], [], UNITS)
    assert bom.as_mapping() == {FABRIC: (Decimal("2"), "m"), THREAD: (Decimal("50"), "m")}
    assert [op.kind for op in bom.operations] == [BomOperationKind.SEED, BomOperationKind.SEED]


def test_multiply_modifier(resolver):
    """Taille XL: 2 m de tissu x 1.4 = 2.8 m."""
    xl = SelectedOptionBom(label="a10", modifiers=[modifier(1, 1, "multiply", "1.4")])
    bom = resolver.resolve([base(1, FABRIC, "2")], [xl], [], UNITS)
    assert bom.lines[FABRIC].quantity == Decimal("2.8")


def test_additions_apply_before_modifiers(resolver):
    """Pour une même option, les ajouts passent avant les modificateurs."""
    option = SelectedOptionBom(
        label="a10",
        additions=[addition(1, FABRIC, "1")],
        modifiers=[modifier(1, 1, "multiply", "2")],
    )
    bom = resolver.resolve([base(1, FABRIC, "2")], [option], [], UNITS)
    assert bom.lines[FABRIC].quantity == Decimal("6")


def test_addition_of_new_material(resolver):
    option = SelectedOptionBom(label="a10", additions=[addition(1, BUTTON, "4")])
    bom = resolver.resolve([base(1, FABRIC, "2")], [option], [], UNITS)
    assert bom.lines[BUTTON].quantity == Decimal("4")
    assert bom.lines[BUTTON].unit == "unit"
    assert bom.lines[BUTTON].is_required is True


def test_modifier_add_and_set(resolver):
    options = [
        SelectedOptionBom(label="a10", modifiers=[modifier(1, 1, "add", "0.5")]),
        SelectedOptionBom(label="a11", modifiers=[modifier(2, 2, "set", "80")]),
    ]
    bom = resolver.resolve([base(1, FABRIC, "2"), base(2, THREAD, "50")], options, [], UNITS)
    assert bom.lines[FABRIC].quantity == Decimal("2.5")
    assert bom.lines[THREAD].quantity == Decimal("80")


def test_replace_override(resolver):
    """Le lin remplace le coton: la ligne remplacée disparaît, l'obligation est héritée."""
    bom = resolver.resolve(
        [base(1, FABRIC, "2", is_required=False)],
        [],
        [override(1, "replace", LINEN, "3", replaces=FABRIC)],
        UNITS,
    )
    assert FABRIC not in bom.lines
    assert bom.lines[LINEN].quantity == Decimal("3")
    assert bom.lines[LINEN].is_required is False


def test_replace_absent_source_inserts_target(resolver):
    bom = resolver.resolve(
        [base(1, THREAD, "50")],
        [],
        [override(1, "replace", LINEN, "3", replaces=FABRIC)],
        UNITS,
    )
    assert bom.lines[LINEN].quantity == Decimal("3")
    assert bom.lines[LINEN].is_required is True


def test_remove_and_set_quantity_overrides(resolver):
    bom = resolver.resolve(
        [base(1, FABRIC, "2"), base(2, THREAD, "50")],
        [],
        [
            override(1, "remove", THREAD),
            override(2, "set_quantity", FABRIC, "2.2"),
            override(3, "set_quantity", BUTTON, "6"),
            override(4, "remove", LINEN),
        ],
        UNITS,
    )
    assert bom.as_mapping() == {FABRIC: (Decimal("2.2"), "m"), BUTTON: (Decimal("6"), "unit")}


def test_zero_quantity_lines_are_dropped(resolver):
    bom = resolver.resolve(
        [base(1, FABRIC, "2")],
        [],
        [override(1, "set_quantity", FABRIC, "0")],
        UNITS,
    )
    assert bom.lines == {}


def test_negative_intermediate_quantity_is_rejected(resolver):
    option = SelectedOptionBom(label="a10", modifiers=[modifier(1, 1, "add", "-5")])
    with pytest.raises(NegativeQuantityException) as exc_info:
        resolver.resolve([base(1, FABRIC, "2")], [option], [], UNITS)
    assert exc_info.value.material_id == FABRIC
    assert exc_info.value.quantity == Decimal("-3")
    assert exc_info.value.source == "a10/modificateur#1"


def test_dangling_material_reference(resolver):
    with pytest.raises(MaterialNotFoundException):
        resolver.resolve([base(1, FABRIC, "2")], [], [override(1, "add", 99, "1")], UNITS)


def test_modifier_on_unknown_base_entry():
    option = SelectedOptionBom(label="a10", modifiers=[modifier(1, 42, "multiply", "2")])
    with pytest.raises(InvalidBomOperationException):
        compile_operations([base(1, FABRIC, "2")], [option], [])


def test_unknown_modifier_type():
    option = SelectedOptionBom(label="a10", modifiers=[modifier(1, 1, "divide", "2")])
    with pytest.raises(InvalidBomOperationException):
        compile_operations([base(1, FABRIC, "2")], [option], [])


@pytest.mark.parametrize("bad_override", [
    override(1, "replace", LINEN, "3"),
    override(1, "set_quantity", FABRIC),
    override(1, "swap", FABRIC, "1"),
])
def test_invalid_overrides(bad_override):
    with pytest.raises(InvalidBomOperationException):
        compile_operations([base(1, FABRIC, "2")], [], [bad_override])


def test_resolution_is_deterministic(resolver):
    layers = (
        [base(1, FABRIC, "2"), base(2, THREAD, "50")],
        [SelectedOptionBom(label="a10", modifiers=[modifier(1, 1, "multiply", "1.4")])],
        [override(1, "add", BUTTON, "2")],
    )
    first = resolver.resolve(*layers, UNITS)
    second = resolver.resolve(*layers, UNITS)
    assert first.as_mapping() == second.as_mapping()
    assert [op.source for op in first.operations] == [op.source for op in second.operations]


def test_selected_option_keeps_layer_rows():
    """Une option retenue porte ses lignes de couche 2."""
    row = addition(1, BUTTON, "4")
    option = SelectedOptionBom(label="a10", additions=[row])
    assert option.additions[0].raw_material_id == BUTTON
    assert option.additions[0].quantity == Decimal("4")
    assert option.modifiers == []
    assert SelectedOptionBom(label="a11").additions == []
