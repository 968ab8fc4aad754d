"""Paged columnar tables, query plans and filter predicates."""

__version__ = "0.1.0"