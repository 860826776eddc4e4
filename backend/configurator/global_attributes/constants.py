# Types de champs de métadonnées supportés par un template global
FIELD_TYPE_TEXT = "text"
FIELD_TYPE_NUMBER = "number"
FIELD_TYPE_BOOLEAN = "boolean"
FIELD_TYPE_SELECT = "select"
FIELD_TYPE_URL = "url"

METADATA_FIELD_TYPES = (
    FIELD_TYPE_TEXT,
    FIELD_TYPE_NUMBER,
    FIELD_TYPE_BOOLEAN,
    FIELD_TYPE_SELECT,
    FIELD_TYPE_URL,
)

# Chaînes acceptées pour un champ booléen
BOOLEAN_TRUE_VALUES = ("true", "1", "yes", "oui")
BOOLEAN_FALSE_VALUES = ("false", "0", "no", "non")

URL_PREFIXES = ("http://", "https://")
