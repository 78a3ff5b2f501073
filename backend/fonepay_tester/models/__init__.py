"""Pydantic models for transactions, signatures, call records and relay events."""
