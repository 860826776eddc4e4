"""
Tests des fonctions pures de combinaison: produit cartésien, clé canonique, SKU, libellés et prix.
"""
from decimal import Decimal

from configurator.attributes.resolver import AxisOption, AxisSource, ResolvedAxis, selection_token
from configurator.product_variants.combinations import (
    abbreviate,
    build_sku,
    cartesian_product,
    combination_key,
    describe,
)
from configurator.product_variants.pricing import effective_price, effective_weight


def option(axis_id, option_id, display_value, source=AxisSource.ATTRIBUTE, price=None, weight=None):
    return AxisOption(
        source=source,
        axis_id=axis_id,
        option_id=option_id,
        value=display_value.lower(),
        display_value=display_value,
        price_modifier=price,
        weight_modifier_grams=weight,
    )


def axis(axis_id, name, options, source=AxisSource.ATTRIBUTE):
    return ResolvedAxis(source=source, axis_id=axis_id, name=name, display_name=name, position=0, options=options)


def test_selection_tokens():
    assert selection_token(AxisSource.ATTRIBUTE, 3, 12) == "a12"
    assert selection_token(AxisSource.GLOBAL_LINK, 4, 7) == "g4.7"
    assert option(4, 7, "Noir", source=AxisSource.GLOBAL_LINK).token == "g4.7"


def test_cartesian_product_cardinality_and_order():
    colors = axis(1, "couleur", [option(1, 1, "Noir"), option(1, 2, "Blanc")])
    sizes = axis(2, "taille", [option(2, 3, "S"), option(2, 4, "M"), option(2, 5, "L")])
    combos = cartesian_product([colors, sizes])
    assert len(combos) == 6
    assert [o.display_value for o in combos[0]] == ["Noir", "S"]
    assert [o.display_value for o in combos[-1]] == ["Blanc", "L"]
    assert cartesian_product([]) == []


def test_combination_key_is_order_independent():
    assert combination_key(["a5", "g2.9", "a1"]) == combination_key(["g2.9", "a1", "a5"]) == "a1,a5,g2.9"
    assert combination_key(["a1", "a1"]) == "a1"
    assert combination_key([]) is None


def test_same_template_under_two_roles_gives_distinct_keys():
    """Noir/Blanc et Blanc/Noir sous deux rôles d'un même template restent distincts."""
    black_white = [option(1, 10, "Noir", AxisSource.GLOBAL_LINK), option(2, 11, "Blanc", AxisSource.GLOBAL_LINK)]
    white_black = [option(1, 11, "Blanc", AxisSource.GLOBAL_LINK), option(2, 10, "Noir", AxisSource.GLOBAL_LINK)]
    assert combination_key(o.token for o in black_white) != combination_key(o.token for o in white_black)


def test_build_sku():
    combo = [option(1, 1, "Noir"), option(2, 2, "large")]
    assert abbreviate("Blanc") == "BLA"
    # Tronqué puis mis en majuscules
    assert abbreviate("Maße") == "MASS"
    assert abbreviate("No") == "NO"
    assert build_sku("TSH", combo) == "TSH-NOI-LAR"
    assert build_sku("TSH", []) == "TSH"


def test_describe():
    combo = [option(1, 1, "Noir"), option(2, 2, "Grand")]
    assert describe(combo, ["Couleur", "Taille"]) == "Couleur: Noir / Taille: Grand"


def test_effective_price_and_weight():
    selections = [
        option(1, 1, "Noir", price=Decimal("2.50"), weight=10),
        option(2, 2, "Grand", price=None, weight=None),
        option(3, 3, "Cuir", source=AxisSource.GLOBAL_LINK, price=Decimal("-1.00"), weight=-5),
    ]
    assert effective_price(None, Decimal("20.00"), selections) == Decimal("21.50")
    assert effective_price(Decimal("30.00"), Decimal("20.00"), selections) == Decimal("30.00")
    assert effective_weight(None, 200, selections) == 205
    assert effective_weight(150, 200, selections) == 150
