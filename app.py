import logging
import os

import click
from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_migrate import Migrate
from sqlalchemy.exc import IntegrityError

from database import db
from utils.sync_settings import SyncSettings

load_dotenv()

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Initialize Flask app
app = Flask(__name__)
app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///gitsync.db")
app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY")
# Secrets are read once here and handed to request code through app.config
app.config["GIT_SYNC_SETTINGS"] = SyncSettings.from_env()

db.init_app(app)

# Models import should be after initializing db
from models.user import User
from models.git_sync_log import GitSyncLog

from routes.auth import auth_bp
from routes.git_sync import git_sync_bp
from services.identity_service import issue_access_token

# Create flask command lines to update the db based on the model
# Useage:
# Create a migration script in ./migrations/versions
# > flask db migrate -m "Update comments"
# Run the update
# > flask db upgrade
migrate = Migrate(app, db)
app.register_blueprint(auth_bp)
app.register_blueprint(git_sync_bp)


@app.route("/health", methods=["GET"])
def health():
    settings = app.config["GIT_SYNC_SETTINGS"]
    return jsonify(
        {
            "success": True,
            "github_configured": settings.has_github_credentials,
            "github_app": settings.uses_github_app,
            "default_master_configured": bool(settings.default_master_url),
        }
    )


@app.cli.command("create-user")
@click.argument("username")
@click.option("--name", required=True)
@click.option("--email", required=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--role", type=click.Choice(User.ROLES), default=User.MEMBER, show_default=True)
def create_user(username, name, email, password, role):
    """Create a user that can request sync tokens."""
    user = User(username=username, name=name, email=email, role=role)
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise click.ClickException("A user with that username or email already exists.") from exc
    click.echo(f"Created {role} user {username} (id {user.id}).")


@app.cli.command("issue-token")
@click.argument("username")
def issue_token(username):
    """Print a bearer token for USERNAME."""
    user = User.query.filter_by(username=username).first()
    if user is None:
        raise click.ClickException(f"Unknown user '{username}'.")
    click.echo(issue_access_token(user))


if __name__ == "__main__":
    with app.app_context():
        db.create_all()
    app.run(debug=os.environ.get("FLASK_DEBUG") == "1")
