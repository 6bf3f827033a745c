"""
Optional Redis cache for latest-uplink lookups.

CHANGELOG:
- 2026-10-14: Initial creation
"""
