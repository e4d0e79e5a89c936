from sqlalchemy import JSON
import sqlalchemy.dialects.postgresql as pg

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(pg.JSONB(), "postgresql")
