"""Distributed prime search: a TCP master splits ranges, slaves search them in threads."""

__version__ = "0.1.0"