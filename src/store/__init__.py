"""Storage facade and lazy projection.

This module persists versioned documents with mirrored indexed columns
and loads them either fully or as cheap column-only projections.
"""
