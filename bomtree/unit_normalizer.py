"""Quantity unit normalization and mass derivation using the Pint library."""

import logging
from typing import Any, Optional

from pint import UnitRegistry

from .schema import QuantityUnit, UNIT_ALIASES

logger = logging.getLogger(__name__)

# Initialize Pint unit registry
ureg = UnitRegistry()

# QuantityUnit -> Pint unit name (mass units only)
PINT_MASS_UNITS = {
    QuantityUnit.KG: "kilogram",
    QuantityUnit.G: "gram",
    QuantityUnit.LB: "pound",
}


class UnitNormalizer:
    """Normalizes quantity units and derives node mass in kilograms."""

    def __init__(self):
        """Initialize the unit normalizer."""
        self.ureg = ureg

    def normalize_unit(self, value: Any) -> Optional[QuantityUnit]:
        """Map free text unit spellings to a QuantityUnit.

        Args:
            value: Unit cell value (e.g. "EA", "pcs", "kg", "그램")

        Returns:
            QuantityUnit if the spelling is known, None otherwise

        Examples:
            normalize_unit("EA") -> QuantityUnit.EACH
            normalize_unit("Grams") -> QuantityUnit.G
            normalize_unit("m") -> None
        """
        if value is None:
            return None
        if isinstance(value, QuantityUnit):
            return value

        text = str(value).strip().lower().rstrip(".")
        if not text:
            return None

        unit = UNIT_ALIASES.get(text)
        if unit is None:
            logger.debug(f"Unrecognized quantity unit: {value!r}")
        return unit

    def to_kg(self, value: float, unit: QuantityUnit) -> float:
        """Convert a mass value expressed in `unit` to kilograms.

        Raises:
            ValueError: If unit is not a mass unit
        """
        if unit == QuantityUnit.KG:
            return float(value)

        pint_unit = PINT_MASS_UNITS.get(unit)
        if pint_unit is None:
            raise ValueError(f"Not a mass unit: {unit}")

        quantity = self.ureg.Quantity(value, pint_unit)
        return float(quantity.to(self.ureg.kilogram).magnitude)

    def total_mass_kg(
        self,
        qty: Optional[float],
        qty_uom: Optional[QuantityUnit],
        mass_per_ea_kg: Optional[float],
        weight: Optional[float] = None
    ) -> Optional[float]:
        """Derive the total mass of a node in kilograms.

        Rules, first match wins:
        - counted parts (uom "ea", or no uom) with a mass per unit: qty * mass_per_ea_kg
        - mass quantities (kg, g, lb): qty converted to kg
        - legacy total weight when present

        Args:
            qty: Quantity (count or mass)
            qty_uom: Unit of qty
            mass_per_ea_kg: Mass of one unit in kg
            weight: Legacy total weight

        Returns:
            Mass in kg, or None if nothing can be derived
        """
        if qty is not None:
            if qty_uom in (None, QuantityUnit.EACH) and mass_per_ea_kg is not None:
                return qty * mass_per_ea_kg
            if qty_uom in PINT_MASS_UNITS:
                return self.to_kg(qty, qty_uom)

        if weight is not None:
            return weight

        return None
