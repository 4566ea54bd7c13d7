# Main Flask app
import logging

import click
from flask import Flask, jsonify
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from config import config
from errors import SocialError
from models import db
from routes import auth_bp, main_bp, posts_bp, users_bp
from services import bcrypt

logger = logging.getLogger(__name__)


def create_app(config_name='default'):
    app = Flask(__name__)
    app.config.from_object(config[config_name])

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    # Initialize extensions
    db.init_app(app)
    bcrypt.init_app(app)

    # Register blueprints
    app.register_blueprint(main_bp, url_prefix='/')
    app.register_blueprint(auth_bp, url_prefix='/rpc')
    app.register_blueprint(users_bp, url_prefix='/rpc')
    app.register_blueprint(posts_bp, url_prefix='/rpc')

    register_error_handlers(app)
    register_commands(app)

    logger.info(f"Flask app created for '{config_name}' environment")
    return app


def register_error_handlers(app):
    @app.errorhandler(SocialError)
    def handle_social_error(err):
        logger.warning(f"{err.error_code}: {err.message}")
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(err):
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        return jsonify({"error_code": err.name.upper().replace(' ', '_'), "error": err.description}), err.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(err):
        logger.error(f"Unhandled exception: {err}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "error": "Internal server error"}), 500


def register_commands(app):
    @app.cli.command('init-db')
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo('Initialized the database.')
