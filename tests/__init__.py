"""
Header Image Gallery test suite

Structure:
- unit/: Unit tests for individual components (aggregator, sources, config, utils)
- integration/: HTTP-level tests through FastAPI's TestClient
"""
