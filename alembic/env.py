from logging.config import fileConfig

from alembic import context
from sqlmodel import SQLModel

from app.database import engine

import app.models.user  # noqa
import app.models.requirement  # noqa
import app.models.requirement_item  # noqa
import app.models.requirement_approval  # noqa

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata

# SQLite no soporta ALTER COLUMN: se migra en modo batch
render_as_batch = engine.dialect.name == "sqlite"


def run_migrations_offline() -> None:
    context.configure(
        url=engine.url.render_as_string(hide_password=False),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        render_as_batch=render_as_batch,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=render_as_batch,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
