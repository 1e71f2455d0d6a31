"""Persistence backends: in-memory, Postgres (asyncpg) and local JSON state."""
