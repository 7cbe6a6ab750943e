"""
Composition of retry, circuit breaking, fallback and cost accounting.
"""

from resilience_layer.orchestration.caller import ResilientCaller
from resilience_layer.orchestration.container import ResilienceContainer
from resilience_layer.orchestration.inflight import RequestDeduplicator, request_fingerprint

__all__ = ["RequestDeduplicator", "ResilientCaller", "ResilienceContainer", "request_fingerprint"]
