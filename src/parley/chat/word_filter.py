"""Whole-word substitution applied to outgoing prompts."""

from __future__ import annotations

import logging
import re
from typing import List, Mapping, Tuple

__all__ = ["WordReplacementFilter", "apply_replacements"]

LOGGER = logging.getLogger(__name__)

_Span = Tuple[int, int, str]


def apply_replacements(text: str, table: Mapping[str, str]) -> str:
    """Replace every whole-word, case-sensitive occurrence of each key in ``table``.

    Rules claim spans of the original input in the table's iteration order, so
    when two keys overlap the earlier rule wins that span. Replacement text is
    never scanned again, so ``{"a": "b", "b": "c"}`` turns ``"a b"`` into
    ``"b c"``.
    """

    return WordReplacementFilter(table).apply(text)


class WordReplacementFilter:
    """Compiled form of a word-replacement table."""

    def __init__(self, table: Mapping[str, str] | None = None) -> None:
        self._table: dict[str, str] = {}
        for old, new in (table or {}).items():
            if not old:
                LOGGER.debug("Ignoring empty word-replacement key")
                continue
            self._table.setdefault(old, new)
        self._rules = [(re.compile(rf"(?<!\w){re.escape(old)}(?!\w)"), new) for old, new in self._table.items()]

    @property
    def table(self) -> dict[str, str]:
        return dict(self._table)

    def __bool__(self) -> bool:
        return bool(self._table)

    def apply(self, text: str) -> str:
        if not self._rules or not text:
            return text
        spans = sorted(self._claim_spans(text))
        if not spans:
            return text
        pieces: List[str] = []
        cursor = 0
        for start, end, new in spans:
            pieces.append(text[cursor:start])
            pieces.append(new)
            cursor = end
        pieces.append(text[cursor:])
        return "".join(pieces)

    def _claim_spans(self, text: str) -> List[_Span]:
        claimed: List[_Span] = []
        for pattern, new in self._rules:
            position = 0
            while True:
                match = pattern.search(text, position)
                if match is None:
                    break
                start, end = match.span()
                if any(start < other_end and other_start < end for other_start, other_end, _ in claimed):
                    # Taken by an earlier rule; an overlapping occurrence may start later.
                    position = start + 1
                    continue
                claimed.append((start, end, new))
                position = end
        return claimed
