"""
Persistence package: ORM models, async engine/session and migrations.

CHANGELOG:
- 2026-10-14: Initial creation
"""
