"""Declarative rules evaluated against field snapshot rows."""
