"""Integrations with tools outside GNU Screen."""
