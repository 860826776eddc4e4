import pytest
from decimal import Decimal

from configurator.bom.entities import ResolvedBom, ResolvedBomLine
from configurator.bom.producibility import calculate_producibility
from configurator.bom.exceptions import MaterialNotFoundException


def make_bom(*lines):
    return ResolvedBom(lines={
        material_id: ResolvedBomLine(material_id=material_id, quantity=Decimal(quantity), unit="m", is_required=required)
        for material_id, quantity, required in lines
    })


def test_minimum_over_required_lines():
    """min(floor(10 / 2.8), floor(9 / 3)) = 3, les deux matières limitent."""
    bom = make_bom((1, "2.8", True), (2, "3", True))
    result = calculate_producibility(bom, {1: Decimal("10"), 2: Decimal("9")})
    assert result.units == 3
    assert result.is_unbounded is False
    assert result.limiting_material_ids == [1, 2]


def test_single_limiting_material():
    bom = make_bom((1, "2", True), (2, "1", True))
    result = calculate_producibility(bom, {1: Decimal("5"), 2: Decimal("100")})
    assert result.units == 2
    assert result.limiting_material_ids == [1]


def test_optional_lines_are_ignored():
    bom = make_bom((1, "1", True), (2, "5", False))
    result = calculate_producibility(bom, {1: Decimal("4"), 2: Decimal("0")})
    assert result.units == 4


def test_negative_stock_counts_as_zero():
    bom = make_bom((1, "1", True))
    result = calculate_producibility(bom, {1: Decimal("-3")})
    assert result.units == 0
    assert result.limiting_material_ids == [1]


def test_no_required_line_is_unbounded():
    result = calculate_producibility(make_bom((1, "1", False)), {})
    assert result.is_unbounded is True
    assert result.units is None
    assert result.limiting_material_ids == []

    assert calculate_producibility(ResolvedBom(), {}).is_unbounded is True


def test_missing_stock_entry():
    bom = make_bom((7, "1", True))
    with pytest.raises(MaterialNotFoundException):
        calculate_producibility(bom, {})
