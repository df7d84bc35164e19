"""
Rendering Module
================

Artifact emitters over the canonical schema graph. Emitters are
independent of one another; docs reuses the tabular rows and ERD flags.

Components:
- tabular: CSV mapping matrix
- erd: Mermaid entity-relationship diagrams per (db, schema) group
- dialects: DDL for relational engines and validator scripts for MongoDB
- docs: documentation summary and a static HTML site
- naming: collision-free artifact file names
"""
