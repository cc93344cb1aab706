"""Hunting sessions and pet progression backend."""
