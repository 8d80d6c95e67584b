"""Tree BOM schema definitions: canonical fields, header aliases and units."""

from enum import Enum
from typing import Dict, List, Tuple


class FieldTag:
    """Canonical field names a spreadsheet column can map to."""
    LINE_NO = "line_no"
    PARENT_LINE_NO = "parent_line_no"
    PART_NO = "part_no"
    REVISION = "revision"
    NAME = "name"
    MATERIAL = "material"
    QTY = "qty"
    QTY_UOM = "qty_uom"
    MASS_PER_EA_KG = "mass_per_ea_kg"
    MASS_PER_EA_G = "mass_per_ea_g"
    WEIGHT = "weight"


class QuantityUnit(str, Enum):
    """Units a node quantity can be expressed in."""
    EACH = "ea"
    KG = "kg"
    G = "g"
    LB = "lb"


# Canonical fields in the order they are shown and exported
CANONICAL_FIELDS: List[str] = [
    FieldTag.LINE_NO,
    FieldTag.PARENT_LINE_NO,
    FieldTag.PART_NO,
    FieldTag.REVISION,
    FieldTag.NAME,
    FieldTag.MATERIAL,
    FieldTag.QTY,
    FieldTag.QTY_UOM,
    FieldTag.MASS_PER_EA_KG,
    FieldTag.MASS_PER_EA_G,
    FieldTag.WEIGHT,
]

# Exact header spellings (after normalization) for each canonical field.
# English abbreviations and Korean forms used by the EBOM templates.
COLUMN_MAPPINGS: Dict[str, List[str]] = {
    FieldTag.LINE_NO: [
        "line no", "line_no", "lineno", "line number", "line #", "line",
        "라인번호", "라인 번호", "라인no"
    ],
    FieldTag.PARENT_LINE_NO: [
        "parent line no", "parent_line_no", "parentlineno", "parent line number",
        "parent", "parent line", "부모라인", "부모라인번호", "부모 라인번호",
        "상위라인번호"
    ],
    FieldTag.PART_NO: [
        "part no", "part_no", "partno", "part number", "part_number",
        "part #", "p/n", "pn", "품번", "부품번호"
    ],
    FieldTag.REVISION: [
        "rev", "rev.", "revision", "리비전", "개정"
    ],
    FieldTag.NAME: [
        "name", "part name", "part_name", "description", "이름", "품명",
        "부품명", "명칭"
    ],
    FieldTag.MATERIAL: [
        "material", "material code", "material_code", "materialcode",
        "재질", "소재", "자재코드", "재질코드"
    ],
    FieldTag.QTY: [
        "qty", "qty.", "quantity", "q'ty", "수량"
    ],
    FieldTag.QTY_UOM: [
        "qty uom", "qty_uom", "uom", "unit", "units", "unit of measure", "단위"
    ],
    FieldTag.MASS_PER_EA_KG: [
        "mass per ea kg", "mass_per_ea_kg", "mass per ea", "mass per unit",
        "kg/ea", "unit mass", "개당질량", "개당 질량", "개당중량", "개당 중량"
    ],
    FieldTag.MASS_PER_EA_G: [
        "mass per ea g", "mass_per_ea_g", "g/ea", "g / ea", "gram/ea",
        "개당질량(g)", "개당 질량(g)", "개당중량(g)", "개당 중량(g)"
    ],
    FieldTag.WEIGHT: [
        "weight", "unit weight", "total weight", "total mass", "mass",
        "중량", "무게", "질량"
    ],
}

# Fallback substring patterns, tested in order when no exact alias matches.
# parent_line_no must precede line_no ("parent_line_no" contains "line_no"),
# mass_per_ea_g must precede mass_per_ea_kg, mass_per_ea_kg must precede weight
# and weight must precede qty_uom ("unit weight").
COLUMN_PATTERNS: List[Tuple[str, str]] = [
    (FieldTag.PARENT_LINE_NO, r"parent|부모|상위\s*라인"),
    (FieldTag.LINE_NO, r"line\s*(no|number|#)|^line$|라인\s*(번호|no)"),
    (FieldTag.PART_NO, r"part\s*(no|number|#)|p/n|품번|부품\s*번호"),
    (FieldTag.REVISION, r"(^|[\s(])rev(\.|ision)?($|[\s)])|리비전"),
    (FieldTag.MASS_PER_EA_G, r"(^|[\s(/])(g|gram|grams|그램)\s*/\s*(ea|each|pc|개)|(mass\s*per|per\s*(ea|unit)|개당).*\(\s*g\s*\)"),
    (FieldTag.MASS_PER_EA_KG, r"mass\s*per|per\s*(ea|unit)|kg\s*/\s*ea|개당|단위\s*(질량|중량)"),
    (FieldTag.WEIGHT, r"weight|mass|중량|무게|질량|그램|킬로그램"),
    (FieldTag.QTY_UOM, r"uom|unit|단위"),
    (FieldTag.QTY, r"qty|quantity|q'ty|수량"),
    (FieldTag.MATERIAL, r"material|재질|소재|자재"),
    (FieldTag.NAME, r"name|desc|이름|품명|명칭"),
]

# Free text unit spellings -> QuantityUnit
UNIT_ALIASES: Dict[str, QuantityUnit] = {
    "ea": QuantityUnit.EACH,
    "each": QuantityUnit.EACH,
    "pc": QuantityUnit.EACH,
    "pcs": QuantityUnit.EACH,
    "piece": QuantityUnit.EACH,
    "pieces": QuantityUnit.EACH,
    "개": QuantityUnit.EACH,
    "kg": QuantityUnit.KG,
    "kgs": QuantityUnit.KG,
    "kilogram": QuantityUnit.KG,
    "kilograms": QuantityUnit.KG,
    "킬로그램": QuantityUnit.KG,
    "g": QuantityUnit.G,
    "gr": QuantityUnit.G,
    "gram": QuantityUnit.G,
    "grams": QuantityUnit.G,
    "그램": QuantityUnit.G,
    "lb": QuantityUnit.LB,
    "lbs": QuantityUnit.LB,
    "pound": QuantityUnit.LB,
    "pounds": QuantityUnit.LB,
}

# Column order used by exports (parent_line_no is derived from parent links)
NODE_EXPORT_HEADERS: List[str] = [
    FieldTag.LINE_NO,
    FieldTag.PARENT_LINE_NO,
    FieldTag.PART_NO,
    FieldTag.REVISION,
    FieldTag.NAME,
    FieldTag.MATERIAL,
    FieldTag.QTY,
    FieldTag.QTY_UOM,
    FieldTag.MASS_PER_EA_KG,
    "total_mass_kg",
    "level",
]

__all__ = [
    "FieldTag",
    "QuantityUnit",
    "CANONICAL_FIELDS",
    "COLUMN_MAPPINGS",
    "COLUMN_PATTERNS",
    "UNIT_ALIASES",
    "NODE_EXPORT_HEADERS",
]
