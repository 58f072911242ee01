"""Outer interfaces of the synchronization service."""
