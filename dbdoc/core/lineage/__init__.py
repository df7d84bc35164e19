"""Lineage graph construction."""

from dbdoc.core.lineage.builder import LineageBuilder, build_lineage

__all__ = ["LineageBuilder", "build_lineage"]
