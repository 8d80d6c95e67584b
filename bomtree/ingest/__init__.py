"""Treetable persistence module for database storage."""

from .treetable_ingest import (
    ImportMode,
    REPORT_ACTION,
    TreetableStore,
    create_treetable,
    save_all_nodes,
    load_nodes,
    row_from_node,
    save_review,
    load_review,
    log_usage_event,
)
from .supabase_client import SupabaseClient

__all__ = [
    "ImportMode",
    "REPORT_ACTION",
    "TreetableStore",
    "SupabaseClient",
    "create_treetable",
    "save_all_nodes",
    "load_nodes",
    "row_from_node",
    "save_review",
    "load_review",
    "log_usage_event",
]
