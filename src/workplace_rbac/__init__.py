"""Role-based access control for multi-tenant workplaces."""

__version__ = "0.1.0"
