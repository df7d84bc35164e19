"""
Data Models
===========

Models:
- graph: canonical schema graph and lineage types (dataclasses)
- schemas: pydantic result models returned across the package boundary
"""
