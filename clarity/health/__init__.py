"""Health-data ingestion: source adapters, source selection and reconciliation."""
