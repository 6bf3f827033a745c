"""
Service layer: ingestion writes, queries, aggregation and the
recent-events log. Functions take an AsyncSession and never import the
HTTP layer.

CHANGELOG:
- 2026-10-14: Initial creation
"""
