"""Exceptions spécifiques au domaine des attributs globaux (templates partagés)."""
from typing import Any


class GlobalAttributeDomainException(Exception):
    """Classe de base pour les exceptions du domaine GlobalAttribute."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class GlobalAttributeNotFoundException(GlobalAttributeDomainException):
    def __init__(self, global_attribute_id: int):
        super().__init__(f"Attribut global avec ID {global_attribute_id} non trouvé.")
        self.global_attribute_id = global_attribute_id


class GlobalOptionNotFoundException(GlobalAttributeDomainException):
    def __init__(self, global_option_id: int):
        super().__init__(f"Option globale avec ID {global_option_id} non trouvée.")
        self.global_option_id = global_option_id


class MetadataFieldNotFoundException(GlobalAttributeDomainException):
    def __init__(self, field_id: int):
        super().__init__(f"Champ de métadonnées avec ID {field_id} non trouvé.")
        self.field_id = field_id


class LinkNotFoundException(GlobalAttributeDomainException):
    def __init__(self, link_id: int):
        super().__init__(f"Lien produit/attribut global avec ID {link_id} non trouvé.")
        self.link_id = link_id


class DuplicateGlobalAttributeException(GlobalAttributeDomainException):
    """Levée lorsqu'un nom (template, champ, option ou rôle) est déjà pris dans sa portée."""
    def __init__(self, scope: str, name: str):
        super().__init__(f"{scope}: '{name}' existe déjà.")
        self.scope = scope
        self.name = name


class InvalidMetadataFieldException(GlobalAttributeDomainException):
    """Levée lorsqu'une définition de champ de métadonnées est incohérente."""
    def __init__(self, field_name: str, reason: str):
        super().__init__(f"Champ de métadonnées '{field_name}' invalide: {reason}")
        self.field_name = field_name
        self.reason = reason


class InvalidMetadataValueException(GlobalAttributeDomainException):
    """Levée lorsqu'une valeur de métadonnées ne respecte pas le schéma du template."""
    def __init__(self, field_name: str, value: Any, reason: str):
        super().__init__(f"Valeur '{value}' invalide pour le champ '{field_name}': {reason}")
        self.field_name = field_name
        self.value = value
        self.reason = reason


class InvalidSelectionException(GlobalAttributeDomainException):
    """Levée lorsqu'une option sélectionnée n'appartient pas au template du lien."""
    def __init__(self, link_id: int, global_option_id: int):
        super().__init__(
            f"L'option globale {global_option_id} n'appartient pas au template du lien {link_id}."
        )
        self.link_id = link_id
        self.global_option_id = global_option_id


class GlobalAttributeInUseException(GlobalAttributeDomainException):
    """Levée lors de la suppression d'un template encore lié à des produits."""
    def __init__(self, global_attribute_id: int, product_count: int):
        super().__init__(
            f"Impossible de supprimer l'attribut global {global_attribute_id}: "
            f"utilisé par {product_count} produit(s)."
        )
        self.global_attribute_id = global_attribute_id
        self.product_count = product_count


class GlobalOptionInUseException(GlobalAttributeDomainException):
    """Levée lors de la suppression d'une option globale portée par des variantes."""
    def __init__(self, global_option_id: int, variant_count: int):
        super().__init__(
            f"Impossible de supprimer l'option globale {global_option_id}: "
            f"utilisée par {variant_count} variante(s). Désactivez-la plutôt."
        )
        self.global_option_id = global_option_id
        self.variant_count = variant_count


class LinkInUseException(GlobalAttributeDomainException):
    """Levée lors de la suppression d'un lien dont dépendent des variantes."""
    def __init__(self, link_id: int, variant_count: int):
        super().__init__(
            f"Impossible de supprimer le lien {link_id}: utilisé par {variant_count} variante(s)."
        )
        self.link_id = link_id
        self.variant_count = variant_count
