import pytest
from decimal import Decimal

from configurator.global_attributes.metadata import (
    check_value,
    metadata_modifier,
    parse_number,
    validate_field_definition,
    validate_option_metadata,
)
from configurator.global_attributes.models import GlobalAttributeMetadataField, MetadataFieldCreate
from configurator.global_attributes.exceptions import InvalidMetadataFieldException, InvalidMetadataValueException


def field(name, field_type="text", is_required=False, default_value=None, select_options=None):
    return GlobalAttributeMetadataField(
        global_attribute_id=1,
        field_name=name,
        display_name=name.capitalize(),
        field_type=field_type,
        is_required=is_required,
        default_value=default_value,
        select_options=select_options,
    )


def test_parse_number():
    assert parse_number("prix", "2.5") == Decimal("2.5")
    assert parse_number("prix", 3) == Decimal("3")
    for bad in ("abc", True, "NaN", "Infinity"):
        with pytest.raises(InvalidMetadataValueException):
            parse_number("prix", bad)


def test_check_value_by_type():
    check_value(field("actif", "boolean"), "oui")
    check_value(field("actif", "boolean"), False)
    check_value(field("fiche", "url"), "https://example.com/fiche.pdf")
    check_value(field("finition", "select", select_options=["mat", "brillant"]), "mat")
    check_value(field("note", "text"), "libre")

    with pytest.raises(InvalidMetadataValueException):
        check_value(field("actif", "boolean"), "peut-être")
    with pytest.raises(InvalidMetadataValueException):
        check_value(field("fiche", "url"), "ftp://example.com")
    with pytest.raises(InvalidMetadataValueException):
        check_value(field("finition", "select", select_options=["mat"]), "satiné")


def test_validate_field_definition():
    validate_field_definition(MetadataFieldCreate(field_name="surcout", display_name="Surcoût", field_type="number", default_value="0"))

    with pytest.raises(InvalidMetadataFieldException):
        validate_field_definition(MetadataFieldCreate(field_name="x", display_name="X", field_type="color"))
    with pytest.raises(InvalidMetadataFieldException):
        validate_field_definition(MetadataFieldCreate(field_name="finition", display_name="Finition", field_type="select"))
    with pytest.raises(InvalidMetadataFieldException):
        validate_field_definition(MetadataFieldCreate(field_name="surcout", display_name="Surcoût", field_type="number", default_value="beaucoup"))


def test_validate_option_metadata():
    fields = [
        field("surcout", "number", is_required=True),
        field("poids", "number", default_value="0"),
        field("code", "text", is_required=True, default_value="STD"),
    ]
    cleaned = validate_option_metadata(fields, {"surcout": "2.5", "poids": "", "fournisseur": "ACME"})
    # Les valeurs vides sont retirées, les clés hors schéma conservées
    assert cleaned == {"surcout": "2.5", "fournisseur": "ACME"}

    with pytest.raises(InvalidMetadataValueException) as exc_info:
        validate_option_metadata(fields, {"poids": "10"})
    assert exc_info.value.field_name == "surcout"

    with pytest.raises(InvalidMetadataValueException):
        validate_option_metadata(fields, {"surcout": "cher"})


def test_metadata_modifier_falls_back_to_default():
    fields = {"surcout": field("surcout", "number", default_value="1.5")}
    assert metadata_modifier({"surcout": "4"}, "surcout", fields) == Decimal("4")
    assert metadata_modifier({}, "surcout", fields) == Decimal("1.5")
    assert metadata_modifier({}, "inconnu", fields) is None
    assert metadata_modifier({"surcout": "4"}, None, fields) is None
