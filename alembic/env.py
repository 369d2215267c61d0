"""
Alembic environment for the SuperNanny schema.

Migrations run on a sync driver; the async application URL is translated by
``core.database.sync_url``.
"""
import os
import sys
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

import models  # noqa: F401
from core.config import settings
from core.database import Base, sync_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    if not settings.database_url:
        raise ValueError("DATABASE_URL is not set. Please check your .env file or environment variables.")
    return sync_url(settings.database_url)


def configure_options(url: str) -> dict:
    options = {"target_metadata": target_metadata, "compare_type": True}
    # SQLite cannot ALTER most constraints in place
    if url.startswith("sqlite"):
        options["render_as_batch"] = True
    return options


def run_migrations_offline():
    url = get_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **configure_options(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    url = get_url()
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = url

    connectable = engine_from_config(configuration, prefix="sqlalchemy.", poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **configure_options(url))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
