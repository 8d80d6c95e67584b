#!/usr/bin/env python3
"""Example: import a tree BOM workbook into a Supabase treetable.

This script:
1. Parses the input sheet (Excel or CSV) into ordered tree rows
2. Prints the reconstructed tree
3. Saves the rows into a new treetable (replace mode)
4. Prints the material mass / emission report and writes it as CSV

Connection settings come from the environment or a .env file
(SUPABASE_DB_URL, or SUPABASE_DB_HOST / _PORT / _NAME / _USER / _PASSWORD,
plus SUPABASE_DB_SCHEMA).
"""

import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from bomtree import BomTreeParser, build_material_report, export_report_csv, format_tree
from bomtree.adapters.csv_adapter import CsvAdapter
from bomtree.adapters.excel_adapter import ExcelAdapter
from bomtree.ingest import ImportMode, SupabaseClient, create_treetable, save_all_nodes
from bomtree.report import materials_from_records


def import_treetable(input_file: str, table_name: str, report_dir: str = "."):
    """Import a BOM sheet into a new treetable and report its materials.

    Args:
        input_file: Path to the BOM workbook or CSV
        table_name: Name of the treetable to create
        report_dir: Directory the LCA report CSV is written to

    Returns:
        Id of the new treetable
    """
    parser = BomTreeParser()
    parser.register_adapter(ExcelAdapter())
    parser.register_adapter(CsvAdapter())

    report = parser.get_mapping_report(input_file)
    print("Column Mapping Report:")
    for field_name, headers in report['mapped'].items():
        print(f"  {', '.join(str(h) for h in headers)} -> {field_name}")
    if report['unmapped']:
        print(f"  Unmapped: {', '.join(str(h) for h in report['unmapped'])}")

    db = SupabaseClient()
    try:
        treetable_id = create_treetable(db, table_name)
        rows = parser.parse(input_file, treetable_id=treetable_id)

        print(f"\n{format_tree(rows)}\n")

        result = save_all_nodes(db, treetable_id, rows, mode=ImportMode.REPLACE, debug=True)
        print(f"✓ Saved {result.inserted} nodes into treetable {treetable_id}")

        materials = materials_from_records(db.fetch_materials())
        lca = build_material_report(treetable_id, rows, materials)
        for item in lca.items:
            print(f"  {item.material:<20} {item.total_weight_kg:>10.4f} kg  {item.share_percent:6.2f}%")
        print(f"  {'TOTAL':<20} {lca.total_weight_kg:>10.4f} kg")

        report_path = export_report_csv(lca, report_dir)
        print(f"✓ Report saved to: {report_path}")
    finally:
        db.close()

    return treetable_id


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: python import_treetable.py <input_file> <table_name> [report_dir]")
        print("\nExample:")
        print("  python import_treetable.py ebom.xlsx 'Bike frame v2'")
        sys.exit(1)

    load_dotenv(Path(__file__).resolve().parent.parent / ".env")
    logging.basicConfig(level=logging.INFO)

    import_treetable(sys.argv[1], sys.argv[2], *sys.argv[3:4])
