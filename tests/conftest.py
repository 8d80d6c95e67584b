"""Shared fixtures: an in-memory TreetableStore and sample tree BOM records."""

import copy
import itertools
import sys
from pathlib import Path

import pytest

# Add parent directory to path to import bomtree
sys.path.insert(0, str(Path(__file__).parent.parent))

from bomtree.ingest.treetable_ingest import TreetableStore


class InMemoryStore(TreetableStore):
    """TreetableStore kept in dictionaries, with snapshot-based rollback."""

    def __init__(self):
        self.treetables = {}
        self.nodes = {}
        self.materials = []
        self.reviews = {}
        self.usage_events = []
        self.insert_order = []
        self.commits = 0
        self.rollbacks = 0
        self.fail_on_line_no = None
        self.in_transaction = False
        self._snapshot = None
        self._ids = itertools.count(1)

    def _new_id(self, prefix):
        return f"{prefix}-{next(self._ids)}"

    def _require_transaction(self):
        if not self.in_transaction:
            raise RuntimeError("No transaction in progress")

    def begin_transaction(self):
        if self.in_transaction:
            raise RuntimeError("Transaction already in progress")
        self._snapshot = copy.deepcopy(
            (self.treetables, self.nodes, self.reviews, self.usage_events, self.insert_order)
        )
        self.in_transaction = True

    def commit_transaction(self):
        self._require_transaction()
        self.in_transaction = False
        self.commits += 1

    def rollback_transaction(self):
        self._require_transaction()
        (self.treetables, self.nodes, self.reviews,
         self.usage_events, self.insert_order) = self._snapshot
        self.in_transaction = False
        self.rollbacks += 1

    def insert_treetable(self, name, owner_id=None):
        self._require_transaction()
        treetable_id = self._new_id("tt")
        self.treetables[treetable_id] = {"id": treetable_id, "name": name, "owner_id": owner_id}
        return treetable_id

    def fetch_nodes(self, treetable_id):
        return [dict(node) for node in self.nodes.values() if node["treetable_id"] == treetable_id]

    def list_node_ids(self, treetable_id):
        return [node["id"] for node in self.fetch_nodes(treetable_id)]

    def insert_node(self, payload):
        self._require_transaction()
        if self.fail_on_line_no is not None and payload.get("line_no") == self.fail_on_line_no:
            raise RuntimeError(f"insert failed for {self.fail_on_line_no}")
        node_id = self._new_id("node")
        self.nodes[node_id] = {**payload, "id": node_id}
        self.insert_order.append(node_id)
        return node_id

    def upsert_node(self, payload):
        self._require_transaction()
        self.nodes[payload["id"]] = dict(payload)

    def delete_all_nodes(self, treetable_id):
        self._require_transaction()
        doomed = self.list_node_ids(treetable_id)
        return self.delete_nodes(doomed)

    def delete_nodes(self, node_ids):
        self._require_transaction()
        deleted = 0
        for node_id in node_ids:
            if self.nodes.pop(node_id, None) is not None:
                deleted += 1
        return deleted

    def fetch_materials(self):
        return [dict(material) for material in self.materials]

    def upsert_review(self, treetable_id, reviewer_id, checklist):
        self._require_transaction()
        self.reviews[treetable_id] = {
            "reviewer_id": reviewer_id,
            "checklist": checklist,
            "updated_at": next(self._ids),
        }

    def fetch_review(self, treetable_id):
        review = self.reviews.get(treetable_id)
        return dict(review) if review else None

    def latest_iter_idx(self, user_id):
        events = [event for event in self.usage_events if event["user_id"] == user_id]
        return events[-1]["iter_idx"] if events else None

    def insert_usage_event(self, event):
        self._require_transaction()
        self.usage_events.append(dict(event))


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def ebom_records():
    """Raw records as an EBOM sheet with free text headers would yield them."""
    return [
        {"Line No": "1", "Part No": "FR-100", "Name": "Frame", "Material": "AL6061",
         "Qty": 1, "UoM": "EA", "Mass per EA (kg)": 2.5},
        {"Line No": "1.1", "Part No": "BT-10", "Name": "Bolt", "Material": "STEEL",
         "Qty": 4, "UoM": "EA", "Mass per EA (kg)": 0.01},
        {"Line No": "1.2", "Part No": "CV-20", "Name": "Cover", "Material": "ABS",
         "Qty": 1, "UoM": "EA", "Mass per EA (kg)": 0.3},
        {"Line No": "1.2.1", "Part No": "SC-01", "Name": "Screw", "Material": "STEEL",
         "Qty": 2, "UoM": "EA", "Mass per EA (kg)": 0.005},
        {"Line No": "2", "Part No": "PK-01", "Name": "Packaging", "Material": None,
         "Qty": 0.4, "UoM": "kg", "Mass per EA (kg)": None},
    ]
