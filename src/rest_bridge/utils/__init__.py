"""Utility modules for rest-bridge."""

from rest_bridge.utils.transformers import (
    TRANSFORMERS,
    DateTimeTransformer,
    UUIDTransformer,
    ValueTransformer,
    get_transformer,
)

__all__ = [
    "TRANSFORMERS",
    "DateTimeTransformer",
    "UUIDTransformer",
    "ValueTransformer",
    "get_transformer",
]
