"""
Constantes pour le module des matières premières.
"""

# Unités de mesure
UNIT_OF_MEASURES = ("unit", "kg", "g", "m", "m2", "m3", "l", "ml")

# Types de mouvements de stock matière
MOVEMENT_PURCHASE = "purchase"
MOVEMENT_ADJUSTMENT = "adjustment"
MOVEMENT_PRODUCTION_CONSUME = "production_consume"
MOVEMENT_RETURN = "return"
MOVEMENT_DAMAGE = "damage"

MOVEMENT_TYPES = (
    MOVEMENT_PURCHASE,
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_PRODUCTION_CONSUME,
    MOVEMENT_RETURN,
    MOVEMENT_DAMAGE,
)

# Statuts de stock
STOCK_STATUS_AVAILABLE = "AVAILABLE"
STOCK_STATUS_LOW = "LOW"
STOCK_STATUS_OUT = "OUT"
