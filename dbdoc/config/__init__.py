"""
Configuration Management
=======================

Environment-based configuration using Pydantic Settings.

Components:
- settings: Compiler settings and environment configuration
- logging: Structured logging configuration
"""
