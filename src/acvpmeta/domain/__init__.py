"""Reconciliation domain: records, identifiers and the rules that sync them."""
