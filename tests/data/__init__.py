"""
Test Data Package
=================

Sample documents used across the test suite.
"""
