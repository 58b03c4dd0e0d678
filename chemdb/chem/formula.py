"""
Molecular formula helpers.

Public API:
    parse_formula(formula)          -> Counter  (element -> count)
    format_formula(counts)          -> str      (Hill order)
    formula_overlap(a, b)           -> float    (multiset Jaccard, 0..1)
"""

import re
from collections import Counter
from typing import Mapping

_TOKEN = re.compile(r"([A-Z][a-z]*)(\d*)")


def parse_formula(formula: str) -> Counter:
    """Parse a flat molecular formula such as ``C6H12O6`` into element counts.

    Generic atoms used by metabolic models (``R``, ``X``) are kept as
    ordinary element symbols.  Raises ``ValueError`` on anything else that
    is not an element token.
    """
    counts: Counter = Counter()
    if not formula:
        return counts
    text = formula.strip()
    pos = 0
    for match in _TOKEN.finditer(text):
        if match.start() != pos:
            raise ValueError(f"Malformed formula: {formula!r}")
        element, number = match.groups()
        counts[element] += int(number) if number else 1
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"Malformed formula: {formula!r}")
    return counts


def format_formula(counts: Mapping[str, float]) -> str:
    """Format element counts in Hill order (C, H, then alphabetical)."""
    present = {el: n for el, n in counts.items() if n}
    if "C" in present:
        order = ["C"] + (["H"] if "H" in present else [])
        order += sorted(el for el in present if el not in ("C", "H"))
    else:
        order = sorted(present)
    parts = []
    for el in order:
        n = present[el]
        n = int(n) if float(n).is_integer() else n
        parts.append(el if n == 1 else f"{el}{n}")
    return "".join(parts)


def formula_overlap(a: Mapping[str, int], b: Mapping[str, int]) -> float:
    """Shared atoms over total atoms of two formulas (1.0 when identical)."""
    elements = set(a) | set(b)
    union = sum(max(a.get(el, 0), b.get(el, 0)) for el in elements)
    if union == 0:
        return 0.0
    shared = sum(min(a.get(el, 0), b.get(el, 0)) for el in elements)
    return shared / union
