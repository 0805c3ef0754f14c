"""Workplaces and their memberships."""
