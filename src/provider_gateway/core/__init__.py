"""Core contracts, configuration and registry for the provider gateway."""
