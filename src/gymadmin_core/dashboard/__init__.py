"""Concrete dashboard pollers talking to the admin backend."""
