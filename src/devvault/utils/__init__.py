"""Utility helpers shared across the DevVault packages."""
