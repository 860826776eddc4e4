"""
Moteur de configuration produit et de résolution de fabrication.

- attributes / global_attributes: axes de variation d'un produit
- product_variants: génération des combinaisons et gestion des variantes
- bom / raw_materials: nomenclatures en couches, stock matière et productibilité
"""
