"""
Integration tests for the resilience layer.

Test components together or against real external services:
- Redis store (real server, skipped when unreachable)
- Batching pipeline built from settings (provider over httpx MockTransport)
- FastAPI application (TestClient)
"""
