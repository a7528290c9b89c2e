"""ragdesk: organization-scoped document indexing, hybrid search and grounded answers."""

__version__ = "0.1.0"
