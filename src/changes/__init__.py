"""Change proposals embedded in document text as marker pairs."""

from .entities import ProposalResult, parse_text_entities, propose_changes
from .markers import build_decision_units, encode_changes, parse_markers
from .reconcile import ChangeReconciler

__all__ = [
    "ChangeReconciler",
    "ProposalResult",
    "build_decision_units",
    "encode_changes",
    "parse_markers",
    "parse_text_entities",
    "propose_changes",
]
