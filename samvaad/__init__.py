"""Samvaad - one-to-one consultation chat between users and volunteers."""

__version__ = "0.1.0"
