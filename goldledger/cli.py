# Flask CLI commands.
#
# - flask users create --username shop --password secret
#   Create a ledger account.
# - flask sales import-legacy export.json --username shop
#   Load a JSON array of exported sale documents for a user. Weight/rate era
#   documents are stored as they are and keep rendering as legacy sales.

import json

import click
from flask import current_app
from flask.cli import with_appcontext
from werkzeug.security import generate_password_hash

from goldledger import db
from goldledger.exceptions import WriteError
from goldledger.ledger import is_legacy_document
from goldledger.models import User


@click.group('users')
def users_cli():
    """Ledger accounts."""


@users_cli.command('create')
@click.option('--username', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--display-name', default=None)
@with_appcontext
def create_user(username, password, display_name):
    username = username.strip()
    if User.query.filter_by(username=username).first():
        raise click.ClickException(f"User '{username}' already exists")

    user = User(
        username=username,
        display_name=display_name,
        password_hash=generate_password_hash(password)
    )
    db.session.add(user)
    db.session.commit()
    click.echo(f"Created user {username} (ID: {user.id})")


@click.group('sales')
def sales_cli():
    """Sale records."""


@sales_cli.command('import-legacy')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--username', required=True, help='Owner of the imported sales')
@with_appcontext
def import_legacy(path, username):
    user = User.query.filter_by(username=username).first()
    if user is None:
        raise click.ClickException(f"Unknown user '{username}'")

    with open(path, encoding='utf-8') as fh:
        try:
            documents = json.load(fh)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise click.ClickException(f"{path} is not valid JSON: {e}")

    if isinstance(documents, dict):
        # {"<doc id>": {...}} exports
        documents = [
            dict(doc, id=doc.get('id', key))
            for key, doc in documents.items() if isinstance(doc, dict)
        ]
    if not isinstance(documents, list):
        raise click.ClickException("Expected a JSON array of sale documents")
    documents = [doc for doc in documents if isinstance(doc, dict)]

    legacy = sum(1 for doc in documents if is_legacy_document(doc))
    try:
        count = current_app.extensions['sale_store'].import_documents(user.id, documents)
    except WriteError as e:
        raise click.ClickException(str(e))

    click.echo(f"Imported {count} sales for {username} ({legacy} legacy)")
