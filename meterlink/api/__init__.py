"""
HTTP boundary (FastAPI): webhook receivers and query endpoints.

CHANGELOG:
- 2026-10-14: Initial creation
"""
