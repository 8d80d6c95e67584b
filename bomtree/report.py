"""
Material mass and emission (LCA) report for a treetable.

Every row contributes its total mass (qty * mass per unit, or the legacy
weight) to its material. Emissions use the material's emission factor
(kg CO2e per kg) when the materials table has one.
"""

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Dict, Any, Optional

from .models import Row, Material

logger = logging.getLogger(__name__)

UNKNOWN_MATERIAL = "Unknown"

REPORT_CSV_HEADERS = ["material", "total_weight_kg", "share_percent", "emission_kg_co2e"]


@dataclass
class MaterialShare:
    """One material's line in the report."""
    material: str
    total_weight_kg: float
    share_percent: float
    emission_kg_co2e: Optional[float] = None


@dataclass
class MaterialReport:
    """Mass and emission totals of one treetable, grouped by material."""
    treetable_id: Optional[str]
    total_weight_kg: float = 0.0
    total_emission_kg_co2e: float = 0.0
    items: List[MaterialShare] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "treetable_id": self.treetable_id,
            "total_weight_kg": self.total_weight_kg,
            "total_emission_kg_co2e": self.total_emission_kg_co2e,
            "items": [
                {
                    "material": item.material,
                    "total_weight_kg": item.total_weight_kg,
                    "share_percent": item.share_percent,
                    "emission_kg_co2e": item.emission_kg_co2e,
                }
                for item in self.items
            ],
        }


def materials_from_records(records: List[Dict[str, Any]]) -> List[Material]:
    """Build Material objects from materials table rows."""
    materials = []
    for record in records:
        if not record.get("code"):
            continue
        materials.append(Material(
            code=str(record["code"]),
            label=record.get("label"),
            category=record.get("category"),
            weight=float(record["weight"]) if record.get("weight") is not None else None,
            emission_factor=(
                float(record["emission_factor"])
                if record.get("emission_factor") is not None else None
            ),
        ))
    return materials


def _emission_factors(materials: List[Material]) -> Dict[str, float]:
    """Emission factor by material code and by label (codes win on clashes)."""
    factors = {}
    for material in materials:
        if material.emission_factor is not None and material.label:
            factors.setdefault(material.label, material.emission_factor)
    for material in materials:
        if material.emission_factor is not None:
            factors[material.code] = material.emission_factor
    return factors


def build_material_report(
    treetable_id: Optional[str],
    rows: List[Row],
    materials: Optional[List[Material]] = None
) -> MaterialReport:
    """
    Aggregate row masses per material.

    Args:
        treetable_id: Treetable the rows belong to
        rows: Tree rows (any order)
        materials: Materials table; without it no emissions are computed

    Returns:
        MaterialReport with items sorted by mass, heaviest first. Rows
        without a material count as "Unknown"; rows whose mass cannot be
        derived count as 0 kg.
    """
    factors = _emission_factors(materials or [])

    weights: Dict[str, float] = {}
    for row in rows:
        material = row.material or UNKNOWN_MATERIAL
        weights[material] = weights.get(material, 0.0) + (row.total_mass_kg or 0.0)

    total_weight = sum(weights.values())
    report = MaterialReport(treetable_id=treetable_id, total_weight_kg=total_weight)

    for material, weight in sorted(weights.items(), key=lambda item: item[1], reverse=True):
        factor = factors.get(material)
        emission = weight * factor if factor is not None else None
        report.items.append(MaterialShare(
            material=material,
            total_weight_kg=weight,
            share_percent=(weight / total_weight * 100.0) if total_weight > 0 else 0.0,
            emission_kg_co2e=emission,
        ))
        if emission is not None:
            report.total_emission_kg_co2e += emission
        elif material != UNKNOWN_MATERIAL:
            logger.debug(f"No emission factor for material {material!r}")

    return report


def report_file_name(treetable_id: Optional[str]) -> str:
    """Default CSV file name for a report."""
    return f"lca_material_share_{treetable_id}.csv"


def export_report_csv(report: MaterialReport, output_path: str) -> str:
    """
    Write a report as CSV: one line per material plus a TOTAL line.

    Weights and emissions have 4 decimals, shares 2. Every value is quoted.

    Args:
        report: Report from build_material_report
        output_path: File path, or a directory to write report_file_name() into

    Returns:
        Path to the written file
    """
    output_path = Path(output_path)
    if output_path.is_dir():
        output_path = output_path / report_file_name(report.treetable_id)

    with open(output_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f, quoting=csv.QUOTE_ALL)
        writer.writerow(REPORT_CSV_HEADERS)
        for item in report.items:
            writer.writerow([
                item.material,
                f"{item.total_weight_kg:.4f}",
                f"{item.share_percent:.2f}",
                f"{item.emission_kg_co2e:.4f}" if item.emission_kg_co2e is not None else "",
            ])
        writer.writerow([
            "TOTAL",
            f"{report.total_weight_kg:.4f}",
            "100.00" if report.total_weight_kg > 0 else "0.00",
            f"{report.total_emission_kg_co2e:.4f}",
        ])

    return str(output_path)
