"""
InChI Layer Parsing
===================
Splits an InChI string into the layers the consistency scorer relies on.

An InChI is ``InChI=<version>/<formula>/<layer>/<layer>...`` where every
layer after the formula starts with a lowercase prefix: ``c`` connectivity,
``h`` hydrogens, ``q`` charge, ``p`` protons, ``b``/``t``/``m``/``s``
stereochemistry.  Standard InChIs carry the version ``1S``.

The formula layer describes the neutral skeleton; the proton layer adds or
removes hydrogens, so both the formula and the net charge are corrected by
``/p``.

Public API:
    parse_inchi(inchi)          -> InChILayers
    is_inchi(text)              -> bool
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Dict

from chemdb.chem.formula import format_formula, parse_formula

__all__ = ["InChILayers", "parse_inchi", "is_inchi"]

_PREFIX = "InChI="
_MULTIPLIER = re.compile(r"^(\d+)(.*)$")
# Layers after /f (fixed-H) and /r (reconnected) repeat earlier prefixes
_STOP_LAYERS = ("f", "r")


@dataclass(frozen=True)
class InChILayers:
    """Layers of one InChI relevant to formula/charge/stereo comparison."""

    inchi: str
    version: str
    formula_layer: str
    connectivity: str = ""
    hydrogens: str = ""
    charge_layer: str = ""
    proton_layer: str = ""
    stereo_double_bond: str = ""
    stereo_tetrahedral: str = ""

    @property
    def is_standard(self) -> bool:
        return self.version.endswith("S")

    @property
    def has_stereo(self) -> bool:
        return bool(self.stereo_tetrahedral or self.stereo_double_bond)

    @property
    def protons(self) -> int:
        return int(self.proton_layer) if self.proton_layer else 0

    @property
    def formula_counts(self) -> Counter:
        counts = _formula_layer_counts(self.formula_layer)
        if self.protons:
            counts["H"] += self.protons
            if counts["H"] <= 0:
                del counts["H"]
        return counts

    @property
    def formula(self) -> str:
        return format_formula(self.formula_counts)

    @property
    def net_charge(self) -> int:
        return _charge_layer_total(self.charge_layer) + self.protons

    @property
    def connectivity_key(self) -> str:
        """Skeleton identity: connectivity layer, or the formula when absent."""
        return self.connectivity or self.formula_layer or self.formula


def is_inchi(text: str) -> bool:
    return bool(text) and text.strip().startswith(_PREFIX)


def parse_inchi(inchi: str) -> InChILayers:
    """Parse *inchi* into :class:`InChILayers`.

    Raises ``ValueError`` when the string is not an InChI or its formula
    and charge cannot be derived.
    """
    if not is_inchi(inchi):
        raise ValueError(f"Not an InChI: {inchi!r}")
    text = inchi.strip()
    parts = text[len(_PREFIX):].split("/")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ValueError(f"InChI without formula layer: {inchi!r}")
    version = parts[0]
    # a bare proton (InChI=1S/p+1) has no formula layer
    if parts[1][0].islower():
        formula_layer, rest = "", parts[1:]
    else:
        formula_layer, rest = parts[1], parts[2:]

    layers: Dict[str, str] = {}
    for part in rest:
        if not part:
            continue
        prefix, body = part[0], part[1:]
        if prefix in _STOP_LAYERS:
            break
        layers.setdefault(prefix, body)

    parsed = InChILayers(
        inchi=text,
        version=version,
        formula_layer=formula_layer,
        connectivity=layers.get("c", ""),
        hydrogens=layers.get("h", ""),
        charge_layer=layers.get("q", ""),
        proton_layer=layers.get("p", ""),
        stereo_double_bond=layers.get("b", ""),
        stereo_tetrahedral=layers.get("t", ""),
    )
    try:
        formula, charge = parsed.formula, parsed.net_charge
    except ValueError as exc:
        raise ValueError(f"Malformed InChI {inchi!r}: {exc}") from exc
    if not formula and not charge:
        raise ValueError(f"InChI without formula layer: {inchi!r}")
    return parsed


def _formula_layer_counts(formula_layer: str) -> Counter:
    counts: Counter = Counter()
    for component in formula_layer.split("."):
        if not component:
            continue
        multiplier = 1
        match = _MULTIPLIER.match(component)
        if match:
            multiplier, component = int(match.group(1)), match.group(2)
        for element, n in parse_formula(component).items():
            counts[element] += multiplier * n
    return counts


def _charge_layer_total(charge_layer: str) -> int:
    total = 0
    for component in charge_layer.split(";"):
        if not component:
            continue
        multiplier = 1
        if "*" in component:
            mult, component = component.split("*", 1)
            multiplier = int(mult)
        total += multiplier * int(component)
    return total
