"""Pydantic models shared by the engine, storage layer and routers."""
