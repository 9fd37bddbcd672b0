"""Normalized request and response models."""
