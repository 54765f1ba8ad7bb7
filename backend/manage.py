"""Management commands for the PetPocket backend."""

from __future__ import annotations

import logging
import os
from typing import Optional

import click

from petpocket.core.cipher import get_field_cipher
from petpocket.db.base import User
from petpocket.db.mongo import DocumentStore
from petpocket.db.session import SessionLocal, create_tables
from petpocket.domain.entities import Role
from petpocket.repositories.user_repo import UserRepository
from petpocket.services.user_service import UserService

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@click.group()
def cli() -> None:
    """Entry point for management commands."""


@cli.command("create_tables")
def create_tables_command() -> None:
    """Create every relational table that does not exist yet."""
    create_tables()
    logging.info("Relational tables created.")


@cli.command("ensure_indexes")
def ensure_indexes_command() -> None:
    """Create the unique companion-key indexes in the document store."""
    store = DocumentStore.from_settings()
    try:
        store.ensure_indexes()
        logging.info("Document store indexes ensured on %s.", store.db.name)
    finally:
        store.close()


@cli.command("ensure_admin")
@click.option(
    "--email",
    "email_override",
    default=None,
    help="Email of the administrator. Overrides ADMIN_EMAIL environment variable.",
)
@click.option("--name", "name_override", default=None, help="Display name for a new administrator.")
def ensure_admin(email_override: Optional[str], name_override: Optional[str]) -> None:
    """Ensure at least one Administrator exists.

    An existing user with the target email is promoted; otherwise a new
    account is created with ADMIN_PASSWORD.
    """
    target_email = email_override or os.getenv("ADMIN_EMAIL")
    if not target_email:
        raise click.ClickException(
            "ADMIN_EMAIL environment variable is not set and no --email provided."
        )

    create_tables()
    cipher = get_field_cipher()
    store = DocumentStore.from_settings()
    session = SessionLocal()
    try:
        existing_admin = (
            session.query(User).filter(User.role == Role.ADMINISTRATOR.value).first()
        )
        if existing_admin:
            logging.info(
                "Administrator already present (id=%s); no changes made.",
                existing_admin.id,
            )
            return

        user = UserRepository(session).find_by_email(target_email, cipher)
        if user is not None:
            user.role = Role.ADMINISTRATOR.value
            session.commit()
            logging.info("Promoted user id=%s to Administrator.", user.id)
            return

        password = os.getenv("ADMIN_PASSWORD")
        if not password or len(password) < 6:
            raise click.ClickException(
                "ADMIN_PASSWORD must be set (min 6 characters) to create a new administrator."
            )
        user, _ = UserService(session, store, cipher).create_user(
            {
                "name": name_override or os.getenv("ADMIN_NAME", "Administrator"),
                "email": target_email,
                "password": password,
                "role": Role.ADMINISTRATOR.value,
            },
            actor=None,
        )
        logging.info("Created Administrator id=%s.", user.id)
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
        store.close()


if __name__ == "__main__":
    cli()
