"""
doccache - projects an on-chain document graph into a typed GraphQL store.

The engine induces GraphQL types from untyped chain documents, evolves the
remote schema add-only, resolves checksum references into object edges and
advances the stream cursor atomically with every write.
"""

__version__ = "0.1.0"
