import asyncio
import logging

import click
from flask import Flask
from flask.cli import with_appcontext

from config import Config

from .extensions import db, migrate

__all__ = ["create_app", "db", "migrate"]


def _configure_logging(app: Flask) -> None:
    level = logging.getLevelName(app.config.get("LOG_LEVEL", "INFO"))
    if not isinstance(level, int):
        level = logging.INFO
    app.logger.setLevel(level)
    logging.getLogger(__name__).setLevel(level)


def create_app(config_class: type[Config] = Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_class)
    _configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)

    from . import models  # noqa: F401  # Ensure models registered for migrations

    with app.app_context():
        db.create_all()

    from .api import create_api

    create_api(app)

    @app.cli.command("seed")
    @with_appcontext
    def seed() -> None:
        """Seed initial data for development."""
        from .seed import seed_data

        created = seed_data()
        click.echo("Database seeded with sample data." if created else "Database already seeded.")

    @app.cli.command("bill-month")
    @click.argument("class_id", type=int)
    @click.argument("year", type=int)
    @click.argument("month", type=int)
    @with_appcontext
    def bill_month(class_id: int, year: int, month: int) -> None:
        """Plan and commit the billing month of every student of a class."""
        from .billing import bill_class_month
        from .errors import CommitFailure, PlanningError

        try:
            result = asyncio.run(bill_class_month(app, class_id, year, month))
        except CommitFailure as exc:
            raise click.ClickException(
                f"{exc} ({exc.result.created} created, {exc.result.skipped} skipped before failure)"
            ) from exc
        except (PlanningError, ValueError) as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"{result.created} record(s) created, {result.skipped} skipped.")

    return app
