"""Orchestration and request validation for the payment endpoints."""
