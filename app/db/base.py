from sqlalchemy.orm import declarative_base

# Shared by every model under app.db.models; alembic/env.py reads its metadata
Base = declarative_base()
