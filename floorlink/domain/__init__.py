"""
Domain logic module for business rules.

This package contains the feature-collection operations, which are
independent of storage and of the services that persist their results.
"""
