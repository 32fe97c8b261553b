# alembic/env.py
from logging.config import fileConfig
import os
import pathlib
import sys

from alembic import context
from sqlalchemy import engine_from_config, pool

# project root on the import path
BASE_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

config = context.config
if getattr(config, "config_file_name", None):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

from wsgi import app  # noqa: E402
from interview_bot.extensions import db  # noqa: E402

with app.app_context():
    url = os.getenv("DATABASE_URL") or app.config.get("SQLALCHEMY_DATABASE_URI")
    import interview_bot.models  # noqa: F401,E402  registers every table on the metadata

    target_metadata = db.metadata


def run_migrations_offline():
    context.configure(url=url, target_metadata=target_metadata,
                      literal_binds=True, compare_type=True, render_as_batch=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config({"sqlalchemy.url": url},
                                     prefix="sqlalchemy.", poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata,
                          compare_type=True, render_as_batch=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
