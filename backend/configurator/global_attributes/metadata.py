"""
Validation des métadonnées structurées des options globales.

Chaque template déclare un schéma (liste de GlobalAttributeMetadataField) et chaque
option porte un dictionnaire `meta` conforme à ce schéma. Les champs numériques
peuvent servir de modificateurs de prix ou de poids pour un lien produit.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Optional

from .constants import (
    METADATA_FIELD_TYPES,
    FIELD_TYPE_NUMBER,
    FIELD_TYPE_BOOLEAN,
    FIELD_TYPE_SELECT,
    FIELD_TYPE_URL,
    BOOLEAN_TRUE_VALUES,
    BOOLEAN_FALSE_VALUES,
    URL_PREFIXES,
)
from .exceptions import InvalidMetadataFieldException, InvalidMetadataValueException
from .models import GlobalAttributeMetadataField, MetadataFieldBase

logger = logging.getLogger(__name__)


def validate_field_definition(field: MetadataFieldBase) -> None:
    """Vérifie la cohérence d'une définition de champ (type connu, options du select, défaut)."""
    if not field.field_name or not field.field_name.strip():
        raise InvalidMetadataFieldException(field.field_name or "", "le nom du champ est requis")
    if field.field_type not in METADATA_FIELD_TYPES:
        raise InvalidMetadataFieldException(field.field_name, f"type '{field.field_type}' inconnu")
    if field.field_type == FIELD_TYPE_SELECT and not field.select_options:
        raise InvalidMetadataFieldException(field.field_name, "un champ 'select' doit lister ses valeurs")
    if field.default_value is not None:
        try:
            check_value(field, field.default_value)
        except InvalidMetadataValueException as e:
            raise InvalidMetadataFieldException(field.field_name, f"valeur par défaut refusée ({e.reason})") from e


def parse_number(field_name: str, value: Any) -> Decimal:
    """Convertit une valeur de métadonnées en Decimal ou lève InvalidMetadataValueException."""
    if isinstance(value, bool):
        raise InvalidMetadataValueException(field_name, value, "nombre attendu")
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise InvalidMetadataValueException(field_name, value, "nombre attendu") from e
    if not number.is_finite():
        raise InvalidMetadataValueException(field_name, value, "nombre fini attendu")
    return number


def check_value(field: MetadataFieldBase, value: Any) -> None:
    """Vérifie qu'une valeur respecte le type déclaré du champ."""
    name = field.field_name
    if field.field_type == FIELD_TYPE_NUMBER:
        parse_number(name, value)
    elif field.field_type == FIELD_TYPE_BOOLEAN:
        if isinstance(value, bool):
            return
        if str(value).strip().lower() not in BOOLEAN_TRUE_VALUES + BOOLEAN_FALSE_VALUES:
            raise InvalidMetadataValueException(name, value, "booléen attendu")
    elif field.field_type == FIELD_TYPE_SELECT:
        if str(value) not in (field.select_options or []):
            raise InvalidMetadataValueException(name, value, f"valeurs autorisées: {field.select_options}")
    elif field.field_type == FIELD_TYPE_URL:
        if not str(value).startswith(URL_PREFIXES):
            raise InvalidMetadataValueException(name, value, "URL http(s) attendue")


def validate_option_metadata(
    fields: Iterable[GlobalAttributeMetadataField],
    meta: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    """
    Valide le dictionnaire de métadonnées d'une option contre le schéma du template.

    Les champs requis sans valeur ni défaut sont refusés. Les clés inconnues du
    schéma sont conservées telles quelles (journalisées en debug).

    Returns:
        Dict[str, Any]: Les métadonnées sans les valeurs vides.
    """
    cleaned = {k: v for k, v in (meta or {}).items() if v is not None and v != ""}
    known = set()
    for field in fields:
        known.add(field.field_name)
        if field.field_name not in cleaned:
            if field.is_required and field.default_value is None:
                raise InvalidMetadataValueException(field.field_name, None, "champ requis")
            continue
        check_value(field, cleaned[field.field_name])

    unknown = set(cleaned) - known
    if unknown:
        logger.debug(f"Clés de métadonnées hors schéma conservées: {sorted(unknown)}")
    return cleaned


def metadata_modifier(
    meta: Optional[Dict[str, Any]],
    field_name: Optional[str],
    fields_by_name: Dict[str, GlobalAttributeMetadataField],
) -> Optional[Decimal]:
    """
    Lit un modificateur numérique dans les métadonnées d'une option.

    Retourne la valeur du champ `field_name`, sinon sa valeur par défaut, sinon None.
    Une valeur non numérique est une erreur de données.
    """
    if not field_name:
        return None
    raw = (meta or {}).get(field_name)
    if raw is None or raw == "":
        field = fields_by_name.get(field_name)
        raw = field.default_value if field else None
    if raw is None or raw == "":
        return None
    return parse_number(field_name, raw)
