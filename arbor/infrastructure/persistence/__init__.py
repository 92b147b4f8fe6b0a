"""SQL persistence (DATABASE_BACKEND=postgres): engine, ORM models, stores, migrations."""
