"""
Test Suite for DBDoc Compiler
=============================

Unit and integration tests for the compilation pipeline.
"""
