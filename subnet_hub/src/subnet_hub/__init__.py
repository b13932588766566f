"""Federated feed hub: verify member sites, merge their feeds, publish one."""

__version__ = "1.0.0"
