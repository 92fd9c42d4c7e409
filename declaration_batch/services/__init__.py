"""Batch services: the polling scheduler."""
