"""Role-based access control for workplaces."""
