#!/usr/bin/env python
"""
chemdb command-line entry point
===============================

Subcommands
-----------
  build    — Build a chemoinformatic database for a metabolic model
  compare  — Score InChI strings for one metabolite against the model

Usage::

    python scripts/run_chemdb.py build --model e_coli_core.json \\
        --identifiers metaboliteIds.xlsx --output_dir ecoli_db --mapper rdt --rdt_jar rdt.jar
    python scripts/run_chemdb.py compare --model e_coli_core.json --met glc__D_c \\
        --inchi kegg="InChI=1S/C6H12O6/..." --inchi hmdb="InChI=1S/..."
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

# ---------------------------------------------------------------------------
# Path setup — ensure project root is importable
# ---------------------------------------------------------------------------
_HERE = Path(__file__).resolve().parent
_ROOT = _HERE.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from chemdb.common.config import BuildConfig, load_config  # noqa: E402
from chemdb.common.errors import ChemDBError, ConfigurationError  # noqa: E402
from chemdb.common.logging_utils import configure_logging, get_user_message, log_exception  # noqa: E402

logger = logging.getLogger("chemdb.cli")


# ---------------------------------------------------------------------------
# Output helper
# ---------------------------------------------------------------------------

def _json_output(data: Dict[str, Any]) -> None:
    """Write *data* as UTF-8 JSON to stdout."""
    output = json.dumps(data, indent=2, ensure_ascii=False, default=str)
    sys.stdout.buffer.write(output.encode("utf-8", errors="replace"))
    sys.stdout.buffer.write(b"\n")
    sys.stdout.buffer.flush()


def _split(values: Optional[str]):
    if values is None:
        return None
    return [v.strip() for v in values.split(",") if v.strip()]


# ---------------------------------------------------------------------------
# Configuration from arguments
# ---------------------------------------------------------------------------

_OVERRIDES = {
    "output_dir": "output_dir",
    "print_level": "print_level",
    "approach": "standardisation_approach",
    "model_ph": "model_ph",
    "max_workers": "max_workers",
    "source_timeout": "source_timeout",
    "conversion_timeout": "conversion_timeout",
    "mapping_timeout": "mapping_timeout",
    "download_dir": "download_dir",
}

_FLAGS = {
    "debug": "debug",
    "adjust_to_ph": "adjust_to_model_ph",
    "keep_candidates": "keep_mol_comparison",
    "only_unmapped": "only_unmapped",
    "replace": "replace",
}


def config_from_args(args: argparse.Namespace) -> BuildConfig:
    """Configuration file (if any) overridden by explicit arguments."""
    base = load_config(args.config) if args.config else BuildConfig()
    values = base.to_dict()
    for arg, key in _OVERRIDES.items():
        if getattr(args, arg) is not None:
            values[key] = getattr(args, arg)
    for arg, key in _FLAGS.items():
        if getattr(args, arg):
            values[key] = True
    if args.no_h_mapping:
        values["h_mapping"] = False
    for arg, key in (("mets", "metabolites"), ("rxns", "reactions"), ("sources", "sources")):
        parsed = _split(getattr(args, arg))
        if parsed is not None:
            values[key] = parsed
    if args.compare_dir:
        values["dirs_to_compare"] = list(args.compare_dir)
        values["dir_names"] = list(args.compare_name or [])
    return BuildConfig.from_dict(values)


def _make_converter(args: argparse.Namespace, config: BuildConfig):
    from chemdb.chem.converter import OpenBabelFormatConverter, RDKitFormatConverter

    if args.converter == "obabel":
        return OpenBabelFormatConverter(timeout=config.conversion_timeout)
    return RDKitFormatConverter()


def _make_mapper(args: argparse.Namespace):
    from chemdb.chem.atom_mapper import RDTAtomMapper, RXNMapperAtomMapper

    if args.mapper == "none":
        return None
    if args.mapper == "rdt":
        if not args.rdt_jar:
            raise ConfigurationError("--mapper rdt requires --rdt_jar")
        if not Path(args.rdt_jar).expanduser().is_file():
            raise ConfigurationError(f"RDT jar not found: {args.rdt_jar}")
        return RDTAtomMapper(args.rdt_jar)
    return RXNMapperAtomMapper()


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------

def _cmd_build(args: argparse.Namespace) -> int:
    """Build the database."""
    from chemdb.io.identifier_table import add_met_info, read_identifier_table
    from chemdb.io.model_loader import load_model_json
    from chemdb.output.model_annotation import annotate_model
    from chemdb.workflow.assembler import DatabaseAssembler

    config = config_from_args(args)
    configure_logging(config.print_level)
    model = load_model_json(args.model)
    if args.identifiers:
        table = read_identifier_table(args.identifiers)
        changed = add_met_info(model, table, replace=args.replace_ids)
        logger.info("Identifier table changed %d metabolite(s)", len(changed))

    assembler = DatabaseAssembler(
        config,
        model,
        converter=_make_converter(args, config),
        mapper=_make_mapper(args),
    )
    try:
        database = assembler.build()
    except KeyboardInterrupt:
        assembler.cancel()
        raise

    result: Dict[str, Any] = {
        "success": True,
        "output_dir": str(assembler.output_path),
        "counts": database.report.counts,
        "issues": len(database.report.issues),
        "conflicts": len(database.report.conflicts),
    }
    if args.annotated_model:
        path = Path(args.annotated_model)
        path.write_text(
            json.dumps(annotate_model(model, database), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        result["annotated_model"] = str(path)
    _json_output(result)
    return 0


def _cmd_compare(args: argparse.Namespace) -> int:
    """Score InChIs for one metabolite (formula and charge from the model)."""
    from chemdb.chem.scorer import compare_inchis
    from chemdb.io.model_loader import load_model_json

    configure_logging(args.print_level)
    model = load_model_json(args.model)
    metabolite = model.metabolites.get(args.met)
    if metabolite is None:
        raise ConfigurationError(f"Metabolite not in the model: {args.met}")

    inchis: Dict[str, str] = {}
    if metabolite.identifiers.get("inchi"):
        inchis["model"] = metabolite.identifiers["inchi"]
    for item in args.inchi or []:
        label, sep, inchi = item.partition("=")
        if not sep or not inchi.startswith("InChI="):
            raise ConfigurationError(f"--inchi expects label=InChI=..., got {item!r}")
        inchis[label] = inchi
    if not inchis:
        raise ConfigurationError(f"No InChI to compare for {args.met}")

    record = compare_inchis(metabolite.met_id, metabolite.formula, metabolite.charge, inchis)
    _json_output({"success": True, "comparison": record.to_dict()})
    return 0


# ---------------------------------------------------------------------------
# CLI setup
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser (exposed for testing)."""
    parser = argparse.ArgumentParser(
        prog="run_chemdb",
        description="Chemoinformatic database builder for metabolic reconstructions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # -- build --
    build_p = subparsers.add_parser("build", help="Build a chemoinformatic database")
    build_p.add_argument("--model", required=True, help="COBRA JSON model")
    build_p.add_argument("--identifiers", default=None, help="Identifier table (.xlsx/.csv/.tsv)")
    build_p.add_argument("--replace_ids", action="store_true",
                         help="Identifier table overrides identifiers already on the model")
    build_p.add_argument("--config", default=None, help="JSON configuration file")
    build_p.add_argument("--output_dir", default=None, help="Output directory")
    build_p.add_argument("--print_level", type=int, default=None, help="0 warnings, 1 info, 2 debug")
    build_p.add_argument("--approach", default=None, choices=["explicitH", "implicitH", "basic"],
                         help="Hydrogen standardisation approach")
    build_p.add_argument("--debug", action="store_true", help="Write debug snapshots")
    build_p.add_argument("--adjust_to_ph", action="store_true", help="Protonate at the model pH")
    build_p.add_argument("--model_ph", type=float, default=None, help="Model pH")
    build_p.add_argument("--keep_candidates", action="store_true",
                         help="Keep every candidate structure")
    build_p.add_argument("--compare_dir", action="append", default=None,
                         help="Prior database directory (repeatable)")
    build_p.add_argument("--compare_name", action="append", default=None,
                         help="Name of the prior database (repeatable, same order)")
    build_p.add_argument("--only_unmapped", action="store_true",
                         help="Write reaction tables without atom mapping")
    build_p.add_argument("--no_h_mapping", action="store_true",
                         help="Do not expand hydrogens before atom mapping")
    build_p.add_argument("--mets", default=None, help="Comma-separated metabolite subset")
    build_p.add_argument("--rxns", default=None, help="Comma-separated reaction subset")
    build_p.add_argument("--sources", default=None, help="Comma-separated sources, in priority order")
    build_p.add_argument("--max_workers", type=int, default=None, help="Worker pool size")
    build_p.add_argument("--source_timeout", type=float, default=None, help="Seconds per download")
    build_p.add_argument("--conversion_timeout", type=float, default=None,
                         help="Seconds per external conversion")
    build_p.add_argument("--mapping_timeout", type=float, default=None,
                         help="Seconds per atom-mapping call")
    build_p.add_argument("--replace", action="store_true", help="Overwrite downloaded structures")
    build_p.add_argument("--download_dir", default=None, help="Structure download cache")
    build_p.add_argument("--converter", default="rdkit", choices=["rdkit", "obabel"],
                         help="Format converter")
    build_p.add_argument("--mapper", default="rxnmapper", choices=["rxnmapper", "rdt", "none"],
                         help="Atom-mapping service")
    build_p.add_argument("--rdt_jar", default=None, help="Reaction Decoder Tool jar")
    build_p.add_argument("--annotated_model", default=None,
                         help="Write the model annotated with database results")

    # -- compare --
    compare_p = subparsers.add_parser("compare", help="Score InChIs for one metabolite")
    compare_p.add_argument("--model", required=True, help="COBRA JSON model")
    compare_p.add_argument("--met", required=True, help="Metabolite id")
    compare_p.add_argument("--inchi", action="append", default=None,
                           help="label=InChI (repeatable)")
    compare_p.add_argument("--print_level", type=int, default=1, help="0 warnings, 1 info, 2 debug")

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Parameters
    ----------
    argv:
        Argument list to parse.  Defaults to ``sys.argv[1:]``.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    handlers = {
        "build": _cmd_build,
        "compare": _cmd_compare,
    }

    handler = handlers.get(args.command)
    if handler is None:
        _json_output({"success": False, "error": f"Unknown command: {args.command}"})
        return 1

    try:
        return handler(args)
    except ChemDBError as exc:
        log_exception(logger, exc)
        _json_output({"success": False, "error": get_user_message(exc)})
        return 1


if __name__ == "__main__":
    sys.exit(main())
