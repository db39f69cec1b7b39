"""Schema migration pipeline.

This module sequences version-to-version document transforms and gates
reads on the version-compatibility contract.
"""
