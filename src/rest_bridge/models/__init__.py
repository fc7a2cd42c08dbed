"""Enumerations shared by the mapping and bridge layers."""

from rest_bridge.models.enums import ChangeKind, FetchType, SaveWorkflow, UniquingKind

__all__ = [
    "ChangeKind",
    "FetchType",
    "SaveWorkflow",
    "UniquingKind",
]
