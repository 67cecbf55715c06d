"""Pydantic request and response models for the settlement API."""
