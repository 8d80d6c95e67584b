"""Row and material records shared by the import, persistence and report layers."""

from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any

from .schema import QuantityUnit
from .unit_normalizer import UnitNormalizer


@dataclass
class Row:
    """
    One tree BOM node before (or after) persistence.

    A Row is rebuilt from scratch on every import pass:
    - tmp_id: client-side identifier, unique within one import batch
    - parent_id: tmp_id of the parent row during import, or the persistent
      id of the parent once loaded from the database
    - level: nesting depth derived from parent links (display only)
    - weight: legacy total weight, superseded by qty * mass_per_ea_kg
    """
    tmp_id: str
    treetable_id: Optional[str] = None
    line_no: Optional[str] = None
    parent_line_no: Optional[str] = None
    parent_id: Optional[str] = None
    part_no: Optional[str] = None
    revision: Optional[str] = None
    name: Optional[str] = None
    material: Optional[str] = None
    qty: Optional[float] = None
    qty_uom: Optional[QuantityUnit] = None
    mass_per_ea_kg: Optional[float] = None
    weight: Optional[float] = None
    level: int = 0
    id: Optional[str] = None
    created_at: Optional[Any] = None
    updated_at: Optional[Any] = None

    @property
    def total_mass_kg(self) -> Optional[float]:
        """Mass of this node in kg, or None when it cannot be derived."""
        return UnitNormalizer().total_mass_kg(
            qty=self.qty,
            qty_uom=self.qty_uom,
            mass_per_ea_kg=self.mass_per_ea_kg,
            weight=self.weight
        )

    def to_node_payload(self) -> Dict[str, Any]:
        """Column values written to treetable_nodes (parent_id excluded)."""
        return {
            "treetable_id": self.treetable_id,
            "line_no": self.line_no,
            "part_no": self.part_no,
            "revision": self.revision,
            "name": self.name,
            "material": self.material,
            "qty": self.qty,
            "qty_uom": self.qty_uom.value if self.qty_uom else None,
            "mass_per_ea_kg": self.mass_per_ea_kg,
            "weight": self.weight,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["qty_uom"] = self.qty_uom.value if self.qty_uom else None
        data["total_mass_kg"] = self.total_mass_kg
        return data


@dataclass
class Material:
    """A row of the materials table."""
    code: str
    label: Optional[str] = None
    category: Optional[str] = None
    weight: Optional[float] = None
    emission_factor: Optional[float] = None  # kg CO2e per kg


@dataclass
class SaveResult:
    """Outcome of persisting one batch of rows."""
    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    id_map: Dict[str, str] = field(default_factory=dict)  # tmp_id -> persistent id
