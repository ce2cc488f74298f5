"""Framework-agnostic domain models and fixed reference data."""
