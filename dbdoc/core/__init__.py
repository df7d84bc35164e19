"""
Core Compilation Logic
======================

Core modules for turning DSL documents into schema artifacts.

Modules:
- dsl: document loading, normalization, validation and transform contracts
- lineage: column- and table-level lineage graph construction
- rendering: CSV, ERD and DDL/validation script emitters
- pipeline: end-to-end compilation facade
"""
