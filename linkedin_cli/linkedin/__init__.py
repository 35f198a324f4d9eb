"""LinkedIn data access: session client, parsers, query IDs and services."""
