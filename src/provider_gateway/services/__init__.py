"""Gateway services: routing, caching, usage tracking and feature helpers."""
