"""Adapters that implement the core service protocols."""
