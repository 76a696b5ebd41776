"""Role-based access control engine for the Hail Solutions CRM."""

__version__ = "0.1.0"
