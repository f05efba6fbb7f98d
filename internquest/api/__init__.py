"""Flask blueprints: callables, HTTP functions, health checks, error handlers."""
