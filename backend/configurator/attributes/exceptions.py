"""Exceptions spécifiques au domaine des attributs (axes de variation)."""


class AttributeDomainException(Exception):
    """Classe de base pour les exceptions du domaine Attribute."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class AttributeNotFoundException(AttributeDomainException):
    def __init__(self, attribute_id: int):
        super().__init__(f"Attribut avec ID {attribute_id} non trouvé.")
        self.attribute_id = attribute_id


class OptionNotFoundException(AttributeDomainException):
    def __init__(self, option_id: int):
        super().__init__(f"Option avec ID {option_id} non trouvée.")
        self.option_id = option_id


class DuplicateAttributeNameException(AttributeDomainException):
    """Levée lorsqu'un produit possède déjà un attribut de ce nom."""
    def __init__(self, product_id: int, name: str):
        super().__init__(f"Le produit {product_id} possède déjà un attribut nommé '{name}'.")
        self.product_id = product_id
        self.name = name


class DuplicateOptionValueException(AttributeDomainException):
    """Levée lorsqu'un attribut possède déjà une option de cette valeur."""
    def __init__(self, attribute_id: int, value: str):
        super().__init__(f"L'attribut {attribute_id} possède déjà une option de valeur '{value}'.")
        self.attribute_id = attribute_id
        self.value = value


class InvalidAttributeTypeException(AttributeDomainException):
    def __init__(self, attribute_type: str):
        super().__init__(f"Type d'attribut invalide: '{attribute_type}'.")
        self.attribute_type = attribute_type


class NoAttributesException(AttributeDomainException):
    """Levée lorsqu'aucun axe éligible (avec au moins une option active) n'existe pour un produit."""
    def __init__(self, product_id: int):
        super().__init__(f"Le produit {product_id} n'a aucun attribut avec des options actives.")
        self.product_id = product_id


class AttributeInUseException(AttributeDomainException):
    """Levée lors de la suppression d'un attribut ou d'une option référencé par des variantes."""
    def __init__(self, entity: str, entity_id: int, variant_count: int):
        super().__init__(
            f"Impossible de supprimer {entity} {entity_id}: utilisé(e) par {variant_count} variante(s). "
            f"Désactivez-le/la plutôt."
        )
        self.entity = entity
        self.entity_id = entity_id
        self.variant_count = variant_count
