"""
Test Utilities
==============

Assertion helpers shared by unit and integration tests.
"""
