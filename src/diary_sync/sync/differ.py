"""Line-based diff engine for diary text.

Computes the edit script between a local and a remote copy of an entry as
a flat sequence of ``add``/``rem`` operations.  Lines common to both sides
(in matching relative order) are never emitted.

Key design choices:

* **Linear-space LCS** -- common prefix and suffix are trimmed first, then
  the remaining middle is matched with Hirschberg's divide and conquer,
  which keeps two rows of LCS lengths instead of the full table.  Memory
  grows with the length of the entries, not with their product.
* **Removals first** -- between two matched lines every ``rem`` comes
  before every ``add``, so a replaced block reads as "drop the old lines,
  then take the new ones".
* **Anchored operations** -- every ``DiffOp`` records ``line_number``, the
  position in the *local* line list it applies to, so ``apply_ops`` can
  rebuild a merged text from any subset of operations.
* **Pure** -- no I/O and no domain errors.  ``unified_diff`` is a thin
  ``difflib`` wrapper for display only.
"""

from __future__ import annotations

import difflib
from collections.abc import Iterable, Iterator, Sequence
from typing import NamedTuple

from diary_sync.sync.models import DiffType


class DiffOp(NamedTuple):
    """One changed line in an edit script.

    Attributes:
        diff_type: ``ADD`` (only in remote) or ``REM`` (only in local).
        text: The literal line content.
        position: Ordinal of the operation within the script.
        line_number: For ``REM`` the index of the removed local line; for
            ``ADD`` the number of local lines preceding the insertion.
    """

    diff_type: DiffType
    text: str
    position: int
    line_number: int


# ---------------------------------------------------------------------------
# Text normalisation
# ---------------------------------------------------------------------------


def split_lines(text: str) -> list[str]:
    """Split *text* into lines.

    Strips a leading BOM, normalises ``\\r\\n`` to ``\\n`` and drops the
    empty element produced by a single trailing newline.  Empty text has
    no lines.
    """
    text = text.lstrip("\ufeff").replace("\r\n", "\n")
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def join_lines(lines: Iterable[str]) -> str:
    """Inverse of ``split_lines`` (no trailing newline)."""
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------


def _lcs_row(a: Sequence[str], b: Sequence[str]) -> list[int]:
    """LCS length of *a* against every prefix of *b*, one row at a time."""
    row = [0] * (len(b) + 1)
    for x in a:
        diagonal = 0
        for j, y in enumerate(b, 1):
            above = row[j]
            row[j] = diagonal + 1 if x == y else max(above, row[j - 1])
            diagonal = above
    return row


def _match_lines(
    a: Sequence[str],
    b: Sequence[str],
    a_offset: int,
    b_offset: int,
    out: list[tuple[int, int]],
) -> None:
    """Append the index pairs of one longest common subsequence to *out*."""
    if not a or not b:
        return
    if len(a) == 1:
        if a[0] in b:
            out.append((a_offset, b_offset + b.index(a[0])))
        return

    mid = len(a) // 2
    head = _lcs_row(a[:mid], b)
    tail = _lcs_row(a[mid:][::-1], b[::-1])
    n = len(b)
    split = max(range(n + 1), key=lambda k: head[k] + tail[n - k])

    _match_lines(a[:mid], b[:split], a_offset, b_offset, out)
    _match_lines(a[mid:], b[split:], a_offset + mid, b_offset + split, out)


def diff_lines(
    local: Sequence[str], remote: Sequence[str]
) -> Iterator[DiffOp]:
    """Lazily yield the edit script turning *local* into *remote*.

    Args:
        local: Lines of the locally stored entry.
        remote: Lines of the remote copy.

    Yields:
        ``DiffOp`` values in script order.  Nothing is yielded for equal
        inputs.
    """
    prefix = 0
    limit = min(len(local), len(remote))
    while prefix < limit and local[prefix] == remote[prefix]:
        prefix += 1

    suffix = 0
    while (
        suffix < limit - prefix
        and local[len(local) - 1 - suffix]
        == remote[len(remote) - 1 - suffix]
    ):
        suffix += 1

    a = local[prefix : len(local) - suffix]
    b = remote[prefix : len(remote) - suffix]
    if not a and not b:
        return

    matches: list[tuple[int, int]] = []
    _match_lines(a, b, 0, 0, matches)
    matches.append((len(a), len(b)))

    i = j = 0
    position = 0
    for next_i, next_j in matches:
        for k in range(i, next_i):
            yield DiffOp(DiffType.REM, a[k], position, prefix + k)
            position += 1
        for k in range(j, next_j):
            yield DiffOp(DiffType.ADD, b[k], position, prefix + next_i)
            position += 1
        i, j = next_i + 1, next_j + 1


def apply_ops(
    local: Sequence[str],
    ops: Iterable[tuple[DiffType, str, int, int]],
) -> list[str]:
    """Rebuild text from *local* and a subset of its edit script.

    Included ``REM`` operations drop their local line; included ``ADD``
    operations are inserted before the local line at ``line_number`` (or
    at the end), in ``position`` order.  Operations left out of *ops*
    simply keep the local side.

    Args:
        local: The local lines the script was computed against.
        ops: ``DiffOp`` values (or tuples of the same shape).

    Returns:
        The merged line list.
    """
    removed: set[int] = set()
    inserts: dict[int, list[tuple[int, str]]] = {}
    for diff_type, text, position, line_number in ops:
        if diff_type == DiffType.REM:
            removed.add(line_number)
        else:
            inserts.setdefault(line_number, []).append((position, text))

    result: list[str] = []
    for index in range(len(local) + 1):
        for _, text in sorted(inserts.get(index, ())):
            result.append(text)
        if index < len(local) and index not in removed:
            result.append(local[index])
    return result


def unified_diff(
    local_text: str,
    remote_text: str,
    label_local: str = "local",
    label_remote: str = "remote",
) -> str:
    """Generate a unified diff between two texts for display.

    Returns an empty string when the texts are identical.
    """
    diff = difflib.unified_diff(
        split_lines(local_text),
        split_lines(remote_text),
        fromfile=label_local,
        tofile=label_remote,
        lineterm="",
    )
    return "\n".join(diff)
