"""Exceptions spécifiques au domaine ProductVariant."""


class ProductVariantDomainException(Exception):
    """Classe de base pour les exceptions du domaine ProductVariant."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class VariantNotFoundException(ProductVariantDomainException):
    """Levée lorsqu'une variante de produit spécifique n'est pas trouvée."""
    def __init__(self, variant_id: int = None, sku: str = None):
        if sku is not None:
            message = f"Variante de produit avec SKU '{sku}' non trouvée."
        else:
            message = f"Variante de produit avec ID {variant_id} non trouvée."
        super().__init__(message)
        self.variant_id = variant_id
        self.sku = sku


class DuplicateSKUException(ProductVariantDomainException):
    """Levée lorsqu'un SKU planifié ou demandé est déjà utilisé."""
    def __init__(self, sku: str):
        super().__init__(f"Le SKU '{sku}' est déjà utilisé par une autre variante.")
        self.sku = sku


class DuplicateCombinationException(ProductVariantDomainException):
    """Levée lorsqu'une variante avec la même combinaison d'options existe déjà."""
    def __init__(self, product_id: int, combination_key: str):
        super().__init__(
            f"Le produit {product_id} possède déjà une variante pour la combinaison '{combination_key}'."
        )
        self.product_id = product_id
        self.combination_key = combination_key


class InvalidVariantSelectionException(ProductVariantDomainException):
    """Levée lorsqu'une sélection d'option ne correspond pas aux axes du produit."""
    def __init__(self, product_id: int, reason: str):
        super().__init__(f"Sélection invalide pour le produit {product_id}: {reason}")
        self.product_id = product_id
        self.reason = reason


class VariantGenerationException(ProductVariantDomainException):
    """Levée lorsque la génération des variantes échoue; aucune écriture n'est conservée."""
    def __init__(self, product_id: int, reason: str):
        super().__init__(f"Échec de la génération des variantes du produit {product_id}: {reason}")
        self.product_id = product_id
        self.reason = reason


class InvalidVariantDataException(ProductVariantDomainException):
    """Levée lorsque des données de variante sont incohérentes (stock négatif, ...)."""
    def __init__(self, reason: str):
        super().__init__(f"Données de variante invalides: {reason}")
        self.reason = reason
