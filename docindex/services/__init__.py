"""Application services: validation, extraction routing and document management."""
