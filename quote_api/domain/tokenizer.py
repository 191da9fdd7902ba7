from __future__ import annotations

import bisect
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple


@dataclass(frozen=True)
class PatternClass:
    label: str
    pattern: re.Pattern


class TokenizeResult(NamedTuple):
    sanitized_text: str
    token_map: Dict[str, str]


# ─────────────────────────────────────────────────────────────────────────────
# Built-in pattern classes
# ─────────────────────────────────────────────────────────────────────────────
EMAIL = PatternClass(
    "EMAIL", re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}")
)
# Requires a digit at both ends so runs of whitespace or punctuation never match.
PHONE = PatternClass(
    "PHONE", re.compile(r"\+?\d[\d\s\-().]{8,15}\d")
)
# 15/18 character record identifiers
SF_ID = PatternClass(
    "SF_ID", re.compile(r"\b(?:[a-zA-Z0-9]{18}|[a-zA-Z0-9]{15})\b")
)

DEFAULT_PATTERN_CLASSES: Tuple[PatternClass, ...] = (EMAIL, PHONE, SF_ID)
_BY_LABEL: Dict[str, PatternClass] = {pc.label: pc for pc in DEFAULT_PATTERN_CLASSES}


def pattern_classes_for(labels: Iterable[str]) -> Tuple[PatternClass, ...]:
    """Resolve configured labels to built-in pattern classes, keeping their order."""
    out: List[PatternClass] = []
    for label in labels:
        pc = _BY_LABEL.get(label.upper())
        if pc is None:
            raise ValueError(f"Unknown PII pattern class: {label}")
        if pc not in out:
            out.append(pc)
    return tuple(out)


class PIITokenizer:
    """
    Replaces sensitive spans with synthetic tokens before text crosses
    the trust boundary.

    All pattern classes are matched against the original text and the
    spans are resolved in one pass (longest match first, then earliest
    start, then class order). Nothing is substituted until every span is
    chosen, so a token inserted for one class can never be matched by
    another class.

    Instances hold only the immutable pattern tuple and are safe to share
    between concurrent requests.
    """

    def __init__(self, pattern_classes: Sequence[PatternClass] = DEFAULT_PATTERN_CLASSES) -> None:
        self._classes: Tuple[PatternClass, ...] = tuple(pattern_classes)

    def _spans(self, text: str) -> List[Tuple[int, int, str]]:
        candidates: List[Tuple[int, int, int, str]] = []
        for rank, pc in enumerate(self._classes):
            for m in pc.pattern.finditer(text):
                if m.end() > m.start():
                    candidates.append((m.start(), m.end(), rank, pc.label))

        candidates.sort(key=lambda c: (-(c[1] - c[0]), c[0], c[2]))

        # chosen spans are disjoint and kept sorted by start, so only the
        # neighbours at the insertion point can overlap a new candidate
        starts: List[int] = []
        chosen: List[Tuple[int, int, str]] = []
        for start, end, _rank, label in candidates:
            i = bisect.bisect_left(starts, start)
            if i > 0 and chosen[i - 1][1] > start:
                continue
            if i < len(starts) and starts[i] < end:
                continue
            starts.insert(i, start)
            chosen.insert(i, (start, end, label))

        return chosen

    def tokenize(self, text: Optional[str]) -> TokenizeResult:
        if not text:
            return TokenizeResult("", {})

        parts: List[str] = []
        token_map: Dict[str, str] = {}
        cursor = 0
        for ordinal, (start, end, label) in enumerate(self._spans(text)):
            token = f"{label}_{ordinal}"
            token_map[token] = text[start:end]
            parts.append(text[cursor:start])
            parts.append(token)
            cursor = end
        parts.append(text[cursor:])
        return TokenizeResult("".join(parts), token_map)

    def tokenize_opaque(self, text: Optional[str]) -> str:
        """
        One-way variant for fields that are only sent onward.

        Spans become the bare placeholder ``[LABEL]``; no map is kept, and the
        placeholder cannot collide with a reversible ``LABEL_n`` token.
        """
        if not text:
            return ""

        parts: List[str] = []
        cursor = 0
        for start, end, label in self._spans(text):
            parts.append(text[cursor:start])
            parts.append(f"[{label}]")
            cursor = end
        parts.append(text[cursor:])
        return "".join(parts)


def detokenize(text: Optional[str], token_map: Optional[Dict[str, str]]) -> Optional[str]:
    """
    Restore original values for user-facing text only.

    Never call this on anything that is about to be sent to the
    generation service.
    """
    if not text or not token_map:
        return text

    # Longest key first so EMAIL_1 never eats the prefix of EMAIL_10
    keys = sorted(token_map, key=len, reverse=True)
    rx = re.compile("|".join(re.escape(k) for k in keys))
    return rx.sub(lambda m: token_map[m.group(0)], text)
