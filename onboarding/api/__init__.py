"""HTTP API for the onboarding role service (Flask blueprints, auth decorators, error handlers)."""
