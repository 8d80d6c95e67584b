"""
Tree reconstruction for flat BOM rows.

Rows arrive as a flat list carrying dotted line numbers ("1", "1.2", "1.2.3")
and optional parent line numbers. This module:
- links each row to its parent (explicit parent line number, or the dotted prefix)
- detaches rows that would close a parent cycle
- derives each row's nesting level from its parent chain
- orders rows depth-first so the flat list reads as an indented tree

Rows are identified by tmp_id throughout; for rows loaded from the database
tmp_id is the persistent id and parent_id points at another persistent id.
"""

import logging
from functools import cmp_to_key
from typing import Dict, List, Optional, Tuple

from .models import Row

logger = logging.getLogger(__name__)


# =============================================================================
# LINE NUMBER COMPARISON
# =============================================================================

def line_number_key(line_no: Optional[str]) -> List[int]:
    """
    Split a dotted line number into integer components.

    Malformed segments count as 0, so this never raises:
        "1.10.2" -> [1, 10, 2]
        "1.a"    -> [1, 0]
        None     -> []
    """
    if not line_no:
        return []

    components = []
    for segment in str(line_no).split("."):
        segment = segment.strip()
        components.append(int(segment) if segment.isdecimal() else 0)
    return components


def compare_line_numbers(a: Optional[str], b: Optional[str]) -> int:
    """
    Compare two dotted line numbers component by component as numbers.

    Missing trailing components compare as 0, so "1" == "1.0" and
    "1.9" < "1.10".

    Returns:
        -1, 0 or 1
    """
    key_a = line_number_key(a)
    key_b = line_number_key(b)

    width = max(len(key_a), len(key_b))
    key_a += [0] * (width - len(key_a))
    key_b += [0] * (width - len(key_b))

    if key_a < key_b:
        return -1
    if key_a > key_b:
        return 1
    return 0


_row_sort_key = cmp_to_key(lambda a, b: compare_line_numbers(a.line_no, b.line_no))


def _dotted_prefixes(line_no: str) -> List[str]:
    """Dotted prefixes of a line number, nearest first ("1.2.3" -> ["1.2", "1"])."""
    prefixes = []
    while "." in line_no:
        line_no = line_no.rsplit(".", 1)[0]
        if not line_no:
            break
        prefixes.append(line_no)
    return prefixes


# =============================================================================
# TREE LINKER
# =============================================================================

def link_parents(rows: List[Row]) -> List[Row]:
    """
    Resolve each row's parent_id from line numbers.

    - A row with a parent_line_no links to the row whose line_no equals it
      exactly. If several rows share that line_no, the later one wins.
      No match leaves the row as a root.
    - A row without parent_line_no links to the row numbered by its nearest
      existing dotted prefix ("1.2.3" -> "1.2", or "1" when there is no "1.2").
    - A row never becomes its own parent.

    Rows are modified in place and returned.
    """
    by_line: Dict[str, Row] = {}
    for row in rows:
        if row.line_no:
            by_line[row.line_no] = row  # later rows overwrite earlier ones

    for row in rows:
        parent = None
        if row.parent_line_no:
            parent = by_line.get(row.parent_line_no)
            if parent is None:
                logger.debug(
                    f"Row {row.line_no!r}: parent line {row.parent_line_no!r} not found, kept as root"
                )
        elif row.line_no:
            for prefix in _dotted_prefixes(row.line_no):
                parent = by_line.get(prefix)
                if parent is not None:
                    break

        if parent is row:
            parent = None

        row.parent_id = parent.tmp_id if parent is not None else None

    return rows


def break_cycles(rows: List[Row]) -> List[Row]:
    """
    Detach rows that close a parent cycle.

    For every cycle found, the member that appears latest in the batch has
    its parent_id cleared (it becomes a root). Every other link is kept.

    Returns:
        The rows that were detached, in detection order
    """
    by_id = {row.tmp_id: row for row in rows}
    position = {row.tmp_id: index for index, row in enumerate(rows)}
    acyclic = set()  # tmp_ids whose chain is known to end at a root
    detached = []

    for row in rows:
        path = []
        on_path = set()
        current = row

        while current is not None and current.tmp_id not in acyclic:
            if current.tmp_id in on_path:
                cycle = path[path.index(current.tmp_id):]
                latest_id = max(cycle, key=lambda tmp_id: position[tmp_id])
                latest = by_id[latest_id]
                logger.warning(
                    f"Parent cycle through lines "
                    f"{[by_id[tmp_id].line_no for tmp_id in cycle]}; "
                    f"detaching line {latest.line_no!r} to root"
                )
                latest.parent_id = None
                detached.append(latest)
                break

            path.append(current.tmp_id)
            on_path.add(current.tmp_id)
            current = by_id.get(current.parent_id) if current.parent_id else None

        acyclic.update(path)

    return detached


# =============================================================================
# LEVEL ASSIGNER
# =============================================================================

def assign_levels(rows: List[Row]) -> List[Row]:
    """
    Set each row's level to the number of parent hops up to its root.

    Walks are memoized so siblings reuse their parent's level. A walk that
    revisits a row (parent cycle) stops there and treats the last row
    reached as a root, so levels stay finite on cyclic input.
    """
    by_id = {row.tmp_id: row for row in rows}
    memo: Dict[str, int] = {}

    for row in rows:
        if row.tmp_id in memo:
            continue

        chain = []
        on_chain = set()
        current = row
        top_level = 0

        while current is not None:
            if current.tmp_id in memo:
                top_level = memo[current.tmp_id] + 1
                break
            if current.tmp_id in on_chain:
                break
            chain.append(current)
            on_chain.add(current.tmp_id)
            current = by_id.get(current.parent_id) if current.parent_id else None

        # chain runs child -> ancestor; the last entry sits at top_level
        for depth, node in enumerate(reversed(chain)):
            memo[node.tmp_id] = top_level + depth

    for row in rows:
        row.level = memo[row.tmp_id]

    return rows


# =============================================================================
# HIERARCHICAL SORTER
# =============================================================================

def sort_hierarchical(rows: List[Row]) -> List[Row]:
    """
    Order rows depth-first: each parent followed by its subtree.

    Roots and siblings are ordered by numeric line number comparison
    (stable for equal line numbers). Rows that cannot be reached from a
    root (members of a parent cycle) are appended in line number order.

    Returns:
        A new list; the input list is not reordered
    """
    by_id = {row.tmp_id: row for row in rows}
    roots = []
    children: Dict[str, List[Row]] = {}

    for row in rows:
        parent_id = row.parent_id
        if parent_id is None or parent_id not in by_id or parent_id == row.tmp_id:
            roots.append(row)
        else:
            children.setdefault(parent_id, []).append(row)

    ordered = []
    seen = set()
    stack = list(reversed(sorted(roots, key=_row_sort_key)))

    while stack:
        node = stack.pop()
        if node.tmp_id in seen:
            continue
        seen.add(node.tmp_id)
        ordered.append(node)
        kids = sorted(children.get(node.tmp_id, []), key=_row_sort_key)
        stack.extend(reversed(kids))

    leftovers = [row for row in rows if row.tmp_id not in seen]
    ordered.extend(sorted(leftovers, key=_row_sort_key))

    return ordered


# =============================================================================
# HELPERS
# =============================================================================

def build_tree(rows: List[Row]) -> List[Row]:
    """Link, de-cycle, level and sort a batch of rows."""
    link_parents(rows)
    break_cycles(rows)
    assign_levels(rows)
    return sort_hierarchical(rows)


def relevel(rows: List[Row]) -> List[Row]:
    """Level and sort rows whose parent_id links are already set."""
    break_cycles(rows)
    assign_levels(rows)
    return sort_hierarchical(rows)


def group_by_parent(rows: List[Row]) -> Dict[Optional[str], List[Row]]:
    """
    Group rows under the tmp_id of their parent within the same batch.

    Rows whose parent is outside the batch (no parent, or a parent that
    already has a persistent id) are grouped under None: they can be
    inserted first.
    """
    batch_ids = {row.tmp_id for row in rows}
    grouped: Dict[Optional[str], List[Row]] = {}
    for row in rows:
        key = row.parent_id if row.parent_id in batch_ids and row.parent_id != row.tmp_id else None
        grouped.setdefault(key, []).append(row)
    return grouped


def find_subtree_range(rows: List[Row], index: int) -> Tuple[int, int]:
    """
    Find the [start, end] index range of the subtree rooted at rows[index].

    rows must be leveled and in hierarchical order.
    """
    base_level = rows[index].level
    end = index
    for i in range(index + 1, len(rows)):
        if rows[i].level <= base_level:
            break
        end = i
    return index, end


def format_tree(rows: List[Row], indent: str = "  ") -> str:
    """Render rows as text, one per line, indented by level."""
    lines = []
    for row in rows:
        label = " ".join(part for part in (row.line_no, row.part_no, row.name) if part)
        lines.append(f"{indent * row.level}{label}")
    return "\n".join(lines)
