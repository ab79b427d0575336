"""
User-facing entry points.
"""
