"""
Shared helpers: error types and logging setup.
"""
