import os
from logging.config import fileConfig

from dotenv import load_dotenv
from sqlalchemy import create_engine, pool

from alembic import context

# Migrations always run through the plain sqlite3 driver; SQLCipher-encrypted
# files must be migrated before a key is applied.

load_dotenv()

config = context.config

# Callers (CLI, test fixtures) may set sqlalchemy.url; otherwise use DB_PATH
sqlalchemy_url = config.get_main_option("sqlalchemy.url")
if not sqlalchemy_url:
    db_path = os.getenv("DB_PATH", "data/foliohub.db")
    sqlalchemy_url = f"sqlite:///{os.path.abspath(db_path)}"
    config.set_main_option("sqlalchemy.url", sqlalchemy_url)

# Keep application loggers alive when Alembic configures logging
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# Schema is written by hand in versions/; no autogenerate metadata
target_metadata = None


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    Emits SQL to the script output without a DBAPI connection.
    """
    context.configure(
        url=sqlalchemy_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against the SQLite file."""
    connectable = create_engine(
        sqlalchemy_url,
        poolclass=pool.NullPool,
        connect_args={"check_same_thread": False},
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
