"""
fontl Test Suite

Structure:
- unit/: catalog, metadata model, CSS/content deriver, config, logging
- integration/: HTTP routes through FastAPI's TestClient against a temp font directory
"""
