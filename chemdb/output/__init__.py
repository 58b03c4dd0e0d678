"""
Output tools — database directory, Markdown report, debug snapshots, model annotation.
"""

from chemdb.output.database_writer import prepare_output_dir, write_database
from chemdb.output.model_annotation import annotate_model
from chemdb.output.report_generator import generate_report_markdown
from chemdb.output.snapshot import load_snapshot, save_snapshot

__all__ = [
    "prepare_output_dir",
    "write_database",
    "annotate_model",
    "generate_report_markdown",
    "save_snapshot",
    "load_snapshot",
]
