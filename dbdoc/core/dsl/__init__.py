"""
DSL Processing Module
====================

Domain Specific Language loading, normalization and checking.

Components:
- parser: JSON/YAML loading and structural schema checks
- normalizer: raw document to canonical schema graph
- validator: referential integrity checks
- transforms: transform-expression name/arity contract
"""
