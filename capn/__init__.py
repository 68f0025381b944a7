"""Cluster API infrastructure types, cloud-init parsing and docker-shim helpers for LXC and Incus."""

__version__ = "0.1.0"