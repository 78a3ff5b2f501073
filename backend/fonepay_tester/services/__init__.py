"""Signing, request building, provider gateway, call log and relay services."""
