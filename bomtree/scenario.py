"""Bootstrap a treetable from one of the bundled scenario workbooks."""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .adapters.excel_adapter import ExcelAdapter
from .importer import rows_from_records
from .ingest.treetable_ingest import (
    ImportMode,
    TreetableStore,
    create_treetable,
    log_usage_event,
    save_all_nodes,
)

logger = logging.getLogger(__name__)

SCENARIO_FILES = {
    "material-change": "material-change.xlsx",
    "size-change": "size-change.xlsx",
    "structure-change": "structure-change.xlsx",
}

SCENARIO_IMPORT_ACTION = "Create Table + Scenario Import"


def scenario_table_name(scenario_id: str, now: Optional[datetime] = None) -> str:
    """Treetable name for a scenario import, e.g. Scenario-size-change-20250101120000."""
    now = now or datetime.now(timezone.utc)
    return f"Scenario-{scenario_id}-{now.strftime('%Y%m%d%H%M%S')}"


def import_scenario(
    db: TreetableStore,
    scenario_id: str,
    scenario_dir: Optional[str] = None,
    user_id: Optional[str] = None,
    user_email: Optional[str] = None
) -> str:
    """
    Create a treetable and fill it from a scenario workbook.

    An unknown scenario_id still creates the (empty) treetable.

    Args:
        db: Storage client
        scenario_id: Key of SCENARIO_FILES
        scenario_dir: Directory holding the workbooks (defaults to the
                      BOMTREE_SCENARIO_DIR env var, then ./scenario)
        user_id: Owner of the new treetable, recorded on the usage event
        user_email: Recorded on the usage event

    Returns:
        Id of the new treetable

    Raises:
        FileNotFoundError: If the scenario workbook is missing
    """
    scenario_dir = Path(scenario_dir or os.getenv("BOMTREE_SCENARIO_DIR", "scenario"))

    treetable_id = create_treetable(db, scenario_table_name(scenario_id), owner_id=user_id)

    file_name = SCENARIO_FILES.get(scenario_id)
    if file_name:
        records = ExcelAdapter().read(str(scenario_dir / file_name))
        rows = rows_from_records(records, treetable_id=treetable_id)
        result = save_all_nodes(db, treetable_id, rows, mode=ImportMode.REPLACE)
        logger.info(f"Scenario {scenario_id!r} imported: {result.inserted} nodes")
    else:
        logger.warning(f"Unknown scenario {scenario_id!r}; treetable left empty")

    log_usage_event(
        db,
        step=scenario_id,
        action=SCENARIO_IMPORT_ACTION,
        detail={"scenario": scenario_id, "treetable_id": treetable_id},
        user_id=user_id,
        user_email=user_email,
    )

    return treetable_id
