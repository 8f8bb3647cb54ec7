"""Signed content-hash manifests for collections of git repositories."""

__version__ = "0.1.0"
