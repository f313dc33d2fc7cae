# -*- coding: utf-8 -*-
"""
List-argument query rewriting.

    rewrite("SELECT * FROM t WHERE x IN (__LIST__)", [3])
        -> "SELECT * FROM t WHERE x IN (?, ?, ?)"

Every list-expansion argument appears in the query text as the sentinel
``__LIST__``, in the same left-to-right order as ``list_lengths``. A length
of zero becomes ``NULL`` so that ``IN ()`` is never produced.

With dollar placeholders every ``$k`` is renumbered to its final parameter
position, since earlier list arguments shift the positions of everything that
follows them.

Placeholders are found with ``scan_placeholders``, which the type oracle uses
too: text inside string literals, quoted identifiers and comments is never a
placeholder.
"""

from __future__ import annotations

import re
from typing import Dict, Iterator, List, Optional, Sequence

from typed_sql.issues import InternalConsistencyError
from typed_sql.types import PlaceholderStyle

LIST_SENTINEL = "__LIST__"
NULL_LITERAL = "NULL"

# Literals, quoted identifiers and comments come first so that a placeholder
# inside one of them is consumed as part of it
PLACEHOLDER_PATTERN = re.compile(
    r"'(?:[^'\\]|\\.|'')*'"
    r'|"(?:[^"]|"")*"'
    r"|`[^`]*`"
    r"|--[^\n]*"
    r"|/\*.*?\*/"
    r"|\$\$.*?\$\$"
    r"|\$(?P<tag>[A-Za-z_][A-Za-z0-9_]*)\$.*?\$(?P=tag)\$"
    r"|(?P<question>\?)"
    r"|(?P<dollar>\$(?P<number>\d+))"
    r"|(?P<sentinel>\b" + LIST_SENTINEL + r"\b)",
    re.DOTALL,
)


def scan_placeholders(query: str, start: int = 0) -> Iterator[re.Match]:
    """Yield the ``?``, ``$n`` and sentinel matches of ``query``, in text order."""
    for match in PLACEHOLDER_PATTERN.finditer(query, start):
        if match.group("question") or match.group("dollar") or match.group("sentinel"):
            yield match


def rewrite(
    query: str,
    list_lengths: Sequence[int],
    style: PlaceholderStyle = PlaceholderStyle.QUESTION_MARK,
    list_slots: Optional[Sequence[int]] = None,
    slot_count: Optional[int] = None,
) -> str:
    """
    Replace each sentinel with ``length`` placeholders (or NULL for 0).

    Args:
        query:        Query text containing one sentinel per list argument.
        list_lengths: Runtime length of each list argument, in text order.
        style:        Placeholder syntax to emit.
        list_slots:   Dollar style only: zero-based slot index of each list
                      argument, parallel to ``list_lengths``.
        slot_count:   Dollar style only: total number of argument slots.

    Raises:
        InternalConsistencyError: sentinel count differs from the number of
            lengths, or dollar-style slot information is missing/inconsistent.
    """
    matches = list(scan_placeholders(query))
    found = sum(1 for m in matches if m.group("sentinel"))
    if found < len(list_lengths):
        raise InternalConsistencyError(
            f"More list arguments than {LIST_SENTINEL} markers in query "
            f"({len(list_lengths)} lengths, {found} markers)"
        )
    if found > len(list_lengths):
        raise InternalConsistencyError(
            f"Too many {LIST_SENTINEL} markers in query "
            f"({found} markers, {len(list_lengths)} lengths)"
        )
    for length in list_lengths:
        if length < 0:
            raise InternalConsistencyError(f"Negative list length: {length}")

    if style == PlaceholderStyle.DOLLAR:
        return _rewrite_dollar(query, matches, list_lengths, list_slots, slot_count)

    lengths = iter(list_lengths)
    replacements = [
        (m, _expand(next(lengths), lambda _i: "?")) for m in matches if m.group("sentinel")
    ]
    return _splice(query, replacements)


# ─── Internal ─────────────────────────────────────────────────────────────────


def _expand(length: int, render) -> str:
    if length == 0:
        return NULL_LITERAL
    return ", ".join(render(i) for i in range(length))


def _splice(query: str, replacements: List[tuple]) -> str:
    out: List[str] = []
    cursor = 0
    for match, text in replacements:
        out.append(query[cursor:match.start()])
        out.append(text)
        cursor = match.end()
    out.append(query[cursor:])
    return "".join(out)


def _rewrite_dollar(
    query: str,
    matches: List[re.Match],
    list_lengths: Sequence[int],
    list_slots: Optional[Sequence[int]],
    slot_count: Optional[int],
) -> str:
    if list_slots is None or slot_count is None:
        if list_lengths:
            raise InternalConsistencyError("Dollar placeholders need list slot positions to renumber")
        return query
    if len(list_slots) != len(list_lengths):
        raise InternalConsistencyError(
            f"{len(list_slots)} list slots given for {len(list_lengths)} list lengths"
        )

    widths: Dict[int, int] = {}
    for slot, length in zip(list_slots, list_lengths):
        if slot < 0 or slot >= slot_count or slot in widths:
            raise InternalConsistencyError(f"Invalid list slot index {slot}")
        widths[slot] = length

    # 1-based position of the first parameter of every slot
    starts: List[int] = []
    position = 1
    for slot in range(slot_count):
        starts.append(position)
        position += widths.get(slot, 1)

    lists = iter(zip(list_slots, list_lengths))
    replacements = []
    for match in matches:
        if match.group("sentinel"):
            slot, length = next(lists)
            first = starts[slot]
            replacements.append((match, _expand(length, lambda i, first=first: f"${first + i}")))
        elif match.group("dollar"):
            slot = int(match.group("number")) - 1
            if slot < 0 or slot >= slot_count:
                raise InternalConsistencyError(f"Placeholder ${slot + 1} outside of {slot_count} slots")
            replacements.append((match, f"${starts[slot]}"))
    return _splice(query, replacements)
