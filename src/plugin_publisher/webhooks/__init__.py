"""Inbound webhook routes (GitHub, Discord)."""
