"""Configuration, errors, time, middleware and observability."""
