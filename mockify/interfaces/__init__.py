"""
Interfaces module - User-facing interfaces for Mockify.

This module provides:
1. CLI interface for command-line use
2. HTTP API using FastAPI
"""
