"""Fetch/save orchestration between the local store and the REST backend.

Submodules:
- requests: fetch and save request values
- bridge: mapping-driven request building and response import
- operation: awaitable back-request operations and their results
- manager: RequestManager, the public entry point
"""

from rest_bridge.bridge.bridge import RESTBridge
from rest_bridge.bridge.manager import RequestManager
from rest_bridge.bridge.operation import BackRequestOperation, BackRequestResult
from rest_bridge.bridge.requests import (
    AdditionalRESTRequestInfo,
    FetchRequest,
    PendingChange,
    SaveRequest,
)

__all__ = [
    "AdditionalRESTRequestInfo",
    "BackRequestOperation",
    "BackRequestResult",
    "FetchRequest",
    "PendingChange",
    "RESTBridge",
    "RequestManager",
    "SaveRequest",
]
