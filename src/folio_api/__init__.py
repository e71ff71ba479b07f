"""folio-api: HTTP surface for publishing assignments."""
