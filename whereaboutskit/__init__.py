"""Manifest builders, pool consistency checks and polling waiters for IPAM end-to-end tests."""

__version__ = "0.1.0"
__all__ = [
    "clientinfo",
    "entities",
    "poolconsistency",
    "retrievers",
    "testenvironment",
    "util",
    "waiters",
]