"""folio-cli: Command-line surface for publishing assignments."""
