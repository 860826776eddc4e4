"""Fonctions pures de combinaison des axes: produit cartésien, clé canonique et SKU."""
import itertools
from typing import Iterable, List, Optional, Sequence

from configurator.config import settings
from configurator.attributes.resolver import AxisOption, ResolvedAxis

KEY_SEPARATOR = ","


def cartesian_product(axes: Sequence[ResolvedAxis]) -> List[List[AxisOption]]:
    """Toutes les combinaisons (une option par axe), dans l'ordre des axes."""
    if not axes:
        return []
    return [list(combo) for combo in itertools.product(*(axis.options for axis in axes))]


def combination_key(tokens: Iterable[str]) -> Optional[str]:
    """
    Clé canonique d'un ensemble de sélections, indépendante de l'ordre.

    Retourne None pour une combinaison vide (variante sans option).
    """
    ordered = sorted(set(tokens))
    if not ordered:
        return None
    return KEY_SEPARATOR.join(ordered)


def abbreviate(display_value: str) -> str:
    return display_value[:settings.SKU_ABBREVIATION_LENGTH].upper()


def build_sku(prefix: str, combination: Sequence[AxisOption]) -> str:
    """SKU déterministe: préfixe puis abréviation de chaque option, dans l'ordre des axes."""
    parts = [prefix] + [abbreviate(option.display_value) for option in combination]
    return settings.SKU_SEPARATOR.join(parts)


def describe(selections: Sequence[AxisOption], axis_labels: Sequence[str]) -> str:
    """Libellé lisible d'une combinaison, ex. 'Couleur: Noir / Taille: Grand'."""
    return " / ".join(
        f"{label}: {option.display_value}" for label, option in zip(axis_labels, selections)
    )
