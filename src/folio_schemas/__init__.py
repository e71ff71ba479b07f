"""folio-schemas: Pydantic models shared across the publish pipeline."""
