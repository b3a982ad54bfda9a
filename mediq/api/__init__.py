"""HTTP layer: schemas, ORM tables, dependencies and SSE streaming."""
