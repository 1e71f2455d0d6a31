"""Infrastructure services: database pool and the app's service graph."""
