"""
Input loading — metabolic model and identifier table.
"""

from chemdb.io.identifier_table import add_met_info, read_identifier_table
from chemdb.io.model_loader import MetabolicModel, from_matrix, load_model_json

__all__ = [
    "MetabolicModel",
    "load_model_json",
    "from_matrix",
    "read_identifier_table",
    "add_met_info",
]
