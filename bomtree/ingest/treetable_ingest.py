"""
Treetable persistence.

A treetable is one BOM tree owned by a user. Its rows live in
treetable_nodes, linked by parent_id. Rows coming from an import carry
temporary ids ("tmp_...") and temporary parent references; saving inserts
them parent-first so every child can be written with the id the database
assigned to its parent.

Key principles:
- One transaction per save: a failed save leaves the treetable untouched
- Rows that already have a persistent id are upserted, never re-inserted
- Usage logging never breaks the caller
"""

import logging
import time
from collections import deque
from dataclasses import replace
from enum import Enum
from typing import Optional, Dict, Any, List

from ..models import Row, SaveResult
from ..normalizer import is_temp_id, to_number, to_text
from ..tree import group_by_parent, relevel
from ..unit_normalizer import UnitNormalizer

logger = logging.getLogger(__name__)

# Action that opens a new iteration in usage_events.iter_idx
REPORT_ACTION = "Display LCA report"


class ImportMode(str, Enum):
    """How imported rows are combined with a treetable's stored nodes."""
    REPLACE = "replace"  # delete every stored node first
    APPEND = "append"    # keep stored nodes


class TreetableStore:
    """
    Abstract storage interface for treetables.

    Implement this interface with your actual database client (e.g., psycopg2).
    Write methods are called between begin_transaction() and
    commit_transaction(); read methods may be called at any time.
    """

    def begin_transaction(self) -> None:
        """Begin a database transaction."""
        raise NotImplementedError

    def commit_transaction(self) -> None:
        """Commit the current transaction."""
        raise NotImplementedError

    def rollback_transaction(self) -> None:
        """Rollback the current transaction."""
        raise NotImplementedError

    def insert_treetable(self, name: str, owner_id: Optional[str] = None) -> str:
        """
        Create a treetable.

        Args:
            name: Display name
            owner_id: User that owns the treetable (optional)

        Returns:
            Id of the new treetable
        """
        raise NotImplementedError

    def fetch_nodes(self, treetable_id: str) -> List[Dict[str, Any]]:
        """
        Get all nodes of a treetable as column dictionaries.

        Returns:
            List of dicts with id, parent_id and the node columns
        """
        raise NotImplementedError

    def list_node_ids(self, treetable_id: str) -> List[str]:
        """Get the ids of all stored nodes of a treetable."""
        raise NotImplementedError

    def insert_node(self, payload: Dict[str, Any]) -> str:
        """
        Insert one node.

        Args:
            payload: Column values, including treetable_id and parent_id

        Returns:
            Id assigned by the database
        """
        raise NotImplementedError

    def upsert_node(self, payload: Dict[str, Any]) -> None:
        """Insert or update a node keyed by payload["id"]."""
        raise NotImplementedError

    def delete_all_nodes(self, treetable_id: str) -> int:
        """Delete every node of a treetable. Returns the number deleted."""
        raise NotImplementedError

    def delete_nodes(self, node_ids: List[str]) -> int:
        """Delete nodes by id. Returns the number deleted."""
        raise NotImplementedError

    def fetch_materials(self) -> List[Dict[str, Any]]:
        """Get the materials table (code, label, category, weight, emission_factor)."""
        raise NotImplementedError

    def upsert_review(
        self,
        treetable_id: str,
        reviewer_id: str,
        checklist: Dict[str, Any]
    ) -> None:
        """Insert or replace the review checklist of a treetable."""
        raise NotImplementedError

    def fetch_review(self, treetable_id: str) -> Optional[Dict[str, Any]]:
        """
        Get the latest review of a treetable.

        Returns:
            Dict with checklist and updated_at, or None if never reviewed
        """
        raise NotImplementedError

    def latest_iter_idx(self, user_id: Optional[str]) -> Optional[int]:
        """Get iter_idx of the user's most recent usage event, or None."""
        raise NotImplementedError

    def insert_usage_event(self, event: Dict[str, Any]) -> None:
        """Insert one usage_events row."""
        raise NotImplementedError


# =============================================================================
# TREETABLES
# =============================================================================

def create_treetable(
    db: TreetableStore,
    name: str,
    owner_id: Optional[str] = None
) -> str:
    """
    Create an empty treetable.

    Returns:
        Id of the new treetable
    """
    db.begin_transaction()
    try:
        treetable_id = db.insert_treetable(name=name, owner_id=owner_id)
        db.commit_transaction()
    except Exception as e:
        db.rollback_transaction()
        logger.error(f"Treetable creation failed: {e}", exc_info=True)
        raise

    logger.info(f"Treetable created: '{name}' → {treetable_id}")
    return treetable_id


# =============================================================================
# NODES
# =============================================================================

def _resolve_parent_id(
    parent_id: Optional[str],
    id_map: Dict[str, str],
    batch_ids: set
) -> Optional[str]:
    """
    Translate a row's parent reference into a persistent id.

    - temporary parent saved in this batch → its new database id
    - temporary parent not in the batch → None (row becomes root)
    - persistent parent id → kept as is
    """
    if parent_id is None:
        return None
    if parent_id in id_map:
        return id_map[parent_id]
    if is_temp_id(parent_id) or parent_id in batch_ids:
        return None
    return parent_id


def _delete_missing_nodes(
    db: TreetableStore,
    treetable_id: str,
    remaining_ids: List[str]
) -> int:
    """Delete stored nodes whose id is not in remaining_ids."""
    keep = set(remaining_ids)
    to_delete = [node_id for node_id in db.list_node_ids(treetable_id) if node_id not in keep]
    if not to_delete:
        return 0
    return db.delete_nodes(to_delete)


def save_all_nodes(
    db: TreetableStore,
    treetable_id: str,
    rows: List[Row],
    mode: ImportMode = ImportMode.REPLACE,
    prune_missing: bool = False,
    debug: bool = False
) -> SaveResult:
    """
    Persist a batch of rows into a treetable.

    Flow:
    1. REPLACE: delete every stored node of the treetable.
       APPEND with prune_missing: delete stored nodes whose id is not
       among the rows' persistent ids.
    2. Insert rows without a persistent id one at a time, each parent
       before its children, remapping temporary parent ids to the ids the
       database assigned.
    3. Upsert rows that already have a persistent id.

    Args:
        db: Storage client
        treetable_id: Target treetable
        rows: Rows as produced by the importer or loaded by load_nodes
        mode: ImportMode (or its string value)
        prune_missing: In APPEND mode, delete stored nodes absent from rows
        debug: Log every insert at info level

    Returns:
        SaveResult with counts and the tmp_id → persistent id map

    Raises:
        ValueError: If mode is not a valid ImportMode
        Exception: If database operations fail (transaction will be rolled back)
    """
    try:
        mode = ImportMode(mode)
    except ValueError:
        raise ValueError(f"Unsupported import mode: {mode!r}. Use 'replace' or 'append'.")

    result = SaveResult()
    new_rows = [row for row in rows if not row.id]
    old_rows = [row for row in rows if row.id]
    batch_ids = {row.tmp_id for row in new_rows}

    db.begin_transaction()

    try:
        # ========================================================================
        # STEP 1: Clear or prune stored nodes
        # ========================================================================
        if mode is ImportMode.REPLACE:
            result.deleted = db.delete_all_nodes(treetable_id)
        elif prune_missing:
            result.deleted = _delete_missing_nodes(
                db, treetable_id, [row.id for row in old_rows]
            )

        if debug and result.deleted:
            logger.info(f"Deleted {result.deleted} stored nodes ({mode.value})")

        # ========================================================================
        # STEP 2: Insert new rows, parents first
        # ========================================================================
        grouped = group_by_parent(new_rows)
        _insert_subtrees(db, treetable_id, grouped, None, batch_ids, result, debug)

        # Rows only reachable through a parent cycle
        for row in new_rows:
            if row.tmp_id not in result.id_map:
                logger.warning(f"Row {row.line_no!r} is in a parent cycle; saved as root")
                _insert_row(db, treetable_id, replace(row, parent_id=None), batch_ids, result, debug)
                _insert_subtrees(db, treetable_id, grouped, row.tmp_id, batch_ids, result, debug)

        # ========================================================================
        # STEP 3: Upsert rows that already exist
        # ========================================================================
        for row in old_rows:
            payload = row.to_node_payload()
            payload.update({
                "id": row.id,
                "treetable_id": treetable_id,
                "parent_id": _resolve_parent_id(row.parent_id, result.id_map, batch_ids),
                "created_at": row.created_at,
                "updated_at": row.updated_at,
            })
            db.upsert_node(payload)
            result.updated += 1

        db.commit_transaction()

        if debug:
            logger.info(
                f"Saved treetable {treetable_id}: {result.inserted} inserted, "
                f"{result.updated} updated, {result.deleted} deleted"
            )

        return result

    except Exception as e:
        db.rollback_transaction()
        logger.error(f"Saving treetable {treetable_id} failed: {e}", exc_info=True)
        raise


def _insert_subtrees(
    db: TreetableStore,
    treetable_id: str,
    grouped: Dict[Optional[str], List[Row]],
    start_key: Optional[str],
    batch_ids: set,
    result: SaveResult,
    debug: bool
) -> None:
    """Insert the rows grouped under start_key and their descendants, level by level."""
    pending = deque([start_key])

    while pending:
        parent_key = pending.popleft()
        for row in grouped.get(parent_key, []):
            if row.tmp_id in result.id_map:
                continue
            _insert_row(db, treetable_id, row, batch_ids, result, debug)
            pending.append(row.tmp_id)


def _insert_row(
    db: TreetableStore,
    treetable_id: str,
    row: Row,
    batch_ids: set,
    result: SaveResult,
    debug: bool
) -> None:
    payload = row.to_node_payload()
    payload["treetable_id"] = treetable_id
    payload["parent_id"] = _resolve_parent_id(row.parent_id, result.id_map, batch_ids)

    node_id = db.insert_node(payload)
    result.id_map[row.tmp_id] = node_id
    result.inserted += 1

    if debug:
        logger.info(f"Node inserted: line {row.line_no!r} {row.tmp_id} → {node_id}")


def row_from_node(node: Dict[str, Any], unit_normalizer: Optional[UnitNormalizer] = None) -> Row:
    """Build a Row from a stored node; tmp_id is the persistent id."""
    unit_normalizer = unit_normalizer or UnitNormalizer()
    node_id = str(node["id"])
    parent_id = node.get("parent_id")
    return Row(
        tmp_id=node_id,
        id=node_id,
        treetable_id=to_text(node.get("treetable_id")),
        parent_id=str(parent_id) if parent_id is not None else None,
        line_no=to_text(node.get("line_no")),
        part_no=to_text(node.get("part_no")),
        revision=to_text(node.get("revision")),
        name=to_text(node.get("name")),
        material=to_text(node.get("material")),
        qty=to_number(node.get("qty")),
        qty_uom=unit_normalizer.normalize_unit(node.get("qty_uom")),
        mass_per_ea_kg=to_number(node.get("mass_per_ea_kg")),
        weight=to_number(node.get("weight")),
        created_at=node.get("created_at"),
        updated_at=node.get("updated_at"),
    )


def load_nodes(db: TreetableStore, treetable_id: str) -> List[Row]:
    """
    Load a treetable's nodes as leveled rows in hierarchical order.

    Parents that are not stored in the treetable are treated as roots.
    """
    unit_normalizer = UnitNormalizer()
    rows = [row_from_node(node, unit_normalizer) for node in db.fetch_nodes(treetable_id)]
    return relevel(rows)


# =============================================================================
# REVIEWS
# =============================================================================

def save_review(
    db: TreetableStore,
    treetable_id: str,
    checklist: Dict[str, Any],
    reviewer_id: Optional[str]
) -> None:
    """
    Save the review checklist of a treetable (one review per treetable).

    Raises:
        ValueError: If no reviewer id is given (not logged in)
    """
    if not reviewer_id:
        raise ValueError("A reviewer id is required to save a review")

    db.begin_transaction()
    try:
        db.upsert_review(treetable_id=treetable_id, reviewer_id=reviewer_id, checklist=checklist)
        db.commit_transaction()
    except Exception as e:
        db.rollback_transaction()
        logger.error(f"Saving review for treetable {treetable_id} failed: {e}", exc_info=True)
        raise


def load_review(db: TreetableStore, treetable_id: str) -> Optional[Dict[str, Any]]:
    """Get the review checklist of a treetable, or None if never reviewed."""
    review = db.fetch_review(treetable_id)
    if not review:
        return None
    return review.get("checklist")


# =============================================================================
# USAGE EVENTS
# =============================================================================

def log_usage_event(
    db: TreetableStore,
    step: str,
    action: str,
    detail: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
    user_email: Optional[str] = None
) -> Optional[int]:
    """
    Record a usage event.

    iter_idx groups a user's events into iterations: the REPORT_ACTION
    starts a new one (previous iter_idx + 1), every other action reuses
    the latest iter_idx. A user with no events starts at 1.

    Failures are logged and swallowed.

    Returns:
        The iter_idx written, or None if logging failed
    """
    t0 = time.perf_counter()

    try:
        latest = db.latest_iter_idx(user_id)
        if action == REPORT_ACTION:
            iter_idx = (latest or 0) + 1
        else:
            iter_idx = latest or 1

        event = {
            "user_id": user_id,
            "user_email": user_email,
            "step": step,
            "action": action,
            "iter_idx": iter_idx,
            "duration_ms": round((time.perf_counter() - t0) * 1000),
            "detail": detail or {},
        }

        db.begin_transaction()
        try:
            db.insert_usage_event(event)
            db.commit_transaction()
        except Exception:
            db.rollback_transaction()
            raise

        return iter_idx

    except Exception as e:
        logger.error(f"Error logging usage event: {e}", exc_info=True)
        return None
