"""Configuration, persistence, errors, auth and observability."""
