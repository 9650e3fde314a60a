"""
Core layer - domain types, ports and the exception hierarchy.

Nothing in this package performs I/O.
"""
