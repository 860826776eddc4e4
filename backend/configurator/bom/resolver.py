"""
Résolution d'une nomenclature de variante.

Les quatre couches sont compilées en une liste ordonnée d'opérations typées,
puis repliées de gauche à droite sur un dictionnaire vide:

1. couche 1 (base produit), dans l'ordre des lignes;
2. pour chaque option retenue, dans l'ordre des axes: ajouts (2a) puis
   modificateurs (2b) des lignes de base;
3. surcharges de la variante (couche 3), dans l'ordre de définition.

Les lignes de quantité finale <= 0 sont retirées du résultat.
"""
import logging
from decimal import Decimal
from typing import Dict, List, Mapping, Sequence

from .constants import ModifierType, OverrideType
from .entities import (
    BomOperation,
    BomOperationKind,
    ResolvedBom,
    ResolvedBomLine,
    SelectedOptionBom,
)
from .exceptions import (
    InvalidBomOperationException,
    MaterialNotFoundException,
    NegativeQuantityException,
)
from .models import ProductBomEntry, VariantBomOverride

logger = logging.getLogger(__name__)

_MODIFIER_KINDS = {
    ModifierType.MULTIPLY.value: BomOperationKind.MODIFY_MULTIPLY,
    ModifierType.ADD.value: BomOperationKind.MODIFY_ADD,
    ModifierType.SET.value: BomOperationKind.MODIFY_SET,
}

_OVERRIDE_KINDS = {
    OverrideType.REPLACE.value: BomOperationKind.REPLACE,
    OverrideType.ADD.value: BomOperationKind.ADD,
    OverrideType.REMOVE.value: BomOperationKind.REMOVE,
    OverrideType.SET_QUANTITY.value: BomOperationKind.SET_QUANTITY,
}


def compile_operations(
    base_entries: Sequence[ProductBomEntry],
    selections: Sequence[SelectedOptionBom],
    overrides: Sequence[VariantBomOverride],
) -> List[BomOperation]:
    """Traduit les couches en opérations; lève InvalidBomOperationException sur une donnée incohérente."""
    operations: List[BomOperation] = []
    base_by_id = {entry.id: entry for entry in base_entries}

    for entry in base_entries:
        operations.append(BomOperation(
            kind=BomOperationKind.SEED,
            material_id=entry.raw_material_id,
            quantity=entry.quantity,
            unit=entry.unit_of_measure,
            is_required=entry.is_required,
            source=f"base#{entry.id}",
        ))

    for selection in selections:
        for addition in selection.additions:
            operations.append(BomOperation(
                kind=BomOperationKind.ADD,
                material_id=addition.raw_material_id,
                quantity=addition.quantity,
                unit=addition.unit_of_measure,
                source=f"{selection.label}/ajout#{addition.id}",
            ))
        for modifier in selection.modifiers:
            source = f"{selection.label}/modificateur#{modifier.id}"
            target = base_by_id.get(modifier.product_bom_entry_id)
            if target is None:
                raise InvalidBomOperationException(
                    f"ligne de base {modifier.product_bom_entry_id} absente de la couche 1", source
                )
            kind = _MODIFIER_KINDS.get(modifier.modifier_type)
            if kind is None:
                raise InvalidBomOperationException(
                    f"type de modificateur '{modifier.modifier_type}' inconnu", source, target.raw_material_id
                )
            if modifier.modifier_value is None:
                raise InvalidBomOperationException("valeur manquante", source, target.raw_material_id)
            operations.append(BomOperation(
                kind=kind,
                material_id=target.raw_material_id,
                quantity=modifier.modifier_value,
                source=source,
            ))

    for override in overrides:
        source = f"surcharge#{override.id}"
        kind = _OVERRIDE_KINDS.get(override.override_type)
        if kind is None:
            raise InvalidBomOperationException(
                f"type de surcharge '{override.override_type}' inconnu", source, override.raw_material_id
            )
        if kind != BomOperationKind.REMOVE and override.quantity is None:
            raise InvalidBomOperationException("quantité manquante", source, override.raw_material_id)
        if kind == BomOperationKind.REPLACE and override.replaces_material_id is None:
            raise InvalidBomOperationException(
                "'replace' sans matière remplacée", source, override.raw_material_id
            )
        operations.append(BomOperation(
            kind=kind,
            material_id=override.raw_material_id,
            quantity=override.quantity,
            unit=override.unit_of_measure,
            replaces_material_id=override.replaces_material_id if kind == BomOperationKind.REPLACE else None,
            source=source,
        ))

    return operations


def _check_quantity(material_id: int, quantity: Decimal, source: str) -> Decimal:
    if quantity < 0:
        raise NegativeQuantityException(material_id, quantity, source)
    return quantity


def apply_operation(
    lines: Dict[int, ResolvedBomLine],
    operation: BomOperation,
    units: Mapping[int, str],
) -> None:
    """Applique une opération au dictionnaire de lignes (modifié sur place)."""
    for material_id in (operation.material_id, operation.replaces_material_id):
        if material_id is not None and material_id not in units:
            raise MaterialNotFoundException(material_id, operation.source)

    mid = operation.material_id
    current = lines.get(mid)
    kind = operation.kind

    if kind == BomOperationKind.SEED:
        lines[mid] = ResolvedBomLine(
            material_id=mid,
            quantity=_check_quantity(mid, operation.quantity, operation.source),
            unit=operation.unit or units[mid],
            is_required=operation.is_required,
        )
    elif kind == BomOperationKind.ADD:
        if current is None:
            lines[mid] = ResolvedBomLine(
                material_id=mid,
                quantity=_check_quantity(mid, operation.quantity, operation.source),
                unit=operation.unit or units[mid],
            )
        else:
            current.quantity = _check_quantity(mid, current.quantity + operation.quantity, operation.source)
    elif kind in (BomOperationKind.MODIFY_MULTIPLY, BomOperationKind.MODIFY_ADD, BomOperationKind.MODIFY_SET):
        if current is None:
            raise InvalidBomOperationException("ligne ciblée absente", operation.source, mid)
        if kind == BomOperationKind.MODIFY_MULTIPLY:
            new_quantity = current.quantity * operation.quantity
        elif kind == BomOperationKind.MODIFY_ADD:
            new_quantity = current.quantity + operation.quantity
        else:
            new_quantity = operation.quantity
        current.quantity = _check_quantity(mid, new_quantity, operation.source)
    elif kind == BomOperationKind.SET_QUANTITY:
        quantity = _check_quantity(mid, operation.quantity, operation.source)
        if current is None:
            lines[mid] = ResolvedBomLine(material_id=mid, quantity=quantity, unit=operation.unit or units[mid])
        else:
            current.quantity = quantity
    elif kind == BomOperationKind.REMOVE:
        if lines.pop(mid, None) is None:
            logger.debug(f"[BomResolver] {operation.source}: matière {mid} absente, suppression ignorée.")
    elif kind == BomOperationKind.REPLACE:
        replaced = lines.pop(operation.replaces_material_id, None)
        lines[mid] = ResolvedBomLine(
            material_id=mid,
            quantity=_check_quantity(mid, operation.quantity, operation.source),
            unit=operation.unit or units[mid],
            is_required=replaced.is_required if replaced is not None else True,
        )
    else:
        raise InvalidBomOperationException(f"opération '{kind}' non gérée", operation.source, mid)


class BomResolver:
    """Résolution pure: mêmes couches en entrée, même nomenclature en sortie."""

    def resolve(
        self,
        base_entries: Sequence[ProductBomEntry],
        selections: Sequence[SelectedOptionBom],
        overrides: Sequence[VariantBomOverride],
        materials: Mapping[int, str],
    ) -> ResolvedBom:
        """
        Args:
            base_entries: Couche 1 du produit
            selections: Couches 2a/2b des options retenues, dans l'ordre des axes
            overrides: Couche 3 de la variante, dans l'ordre de définition
            materials: Matières connues, {material_id: unité de mesure}

        Returns:
            ResolvedBom: Lignes de quantité > 0 et trace des opérations
        """
        operations = compile_operations(base_entries, selections, overrides)
        lines: Dict[int, ResolvedBomLine] = {}
        for operation in operations:
            apply_operation(lines, operation, materials)

        final = {mid: line for mid, line in lines.items() if line.quantity > 0}
        return ResolvedBom(lines=final, operations=operations)
