"""Document model and blob codec.

This module defines the untyped document tree and its binary encoding.
Codec, migrations, and projection all exchange documents in this form.
"""
