"""
Calendar Engine.

Query, disambiguation and batch-consistency engine for calendar and reminder
management exposed as named tool operations.
"""

__version__ = "0.3.0"
