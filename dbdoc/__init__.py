"""
DBDoc Compiler
==============

Compiles declarative schema/mapping documents (targets, sources and
column-level mappings) into derived artifacts.

This package provides:
- Loading and structural checking of JSON/YAML DSL documents
- Normalization into a canonical schema graph
- Referential validation with an exhaustive error/warning report
- Column- and table-level lineage graphs
- Rendered outputs: CSV mapping matrix, Mermaid ERDs and multi-dialect DDL
"""

__version__ = "1.0.0"
__author__ = "DBDoc Team"
