import logging

import click
from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError

from portal.config import load_config, validate_config
from portal.db import init_db
from portal.exceptions import ServiceException
from portal.routes.auth import auth_bp
from portal.routes.registration import registration_bp
from portal.routes.invite import invite_bp
from portal.routes.broker import broker_bp
from portal.routes.role import role_bp
from portal.routes.team import team_bp
from portal.routes.user import user_bp
from portal.routes.loan import loan_bp
from portal.routes.document import document_bp, files_bp
from portal.services.invite_service import InviteService
from portal.services.notification_service import build_mailer
from portal.services.storage_service import LocalBlobStore

logger = logging.getLogger(__name__)


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.update(load_config())
    if overrides:
        app.config.update(overrides)

    validate_config(app.config)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    app.config['MAX_CONTENT_LENGTH'] = app.config['MAX_UPLOAD_MB'] * 1024 * 1024

    init_db(app)
    app.extensions['mailer'] = build_mailer(app.config)
    app.extensions['blob_store'] = LocalBlobStore(app.config['UPLOAD_DIR'])

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(registration_bp)
    app.register_blueprint(invite_bp, url_prefix='/invitations')
    app.register_blueprint(broker_bp, url_prefix='/brokers')
    app.register_blueprint(role_bp, url_prefix='/roles')
    app.register_blueprint(team_bp, url_prefix='/agents')
    app.register_blueprint(user_bp, url_prefix='/users')
    app.register_blueprint(loan_bp, url_prefix='/loan-requests')
    app.register_blueprint(document_bp, url_prefix='/documents')
    app.register_blueprint(files_bp, url_prefix='/files')

    register_error_handlers(app)
    register_commands(app)
    return app


def register_error_handlers(app):
    @app.errorhandler(ServiceException)
    def handle_service_exception(error):
        response = {
            'error': True,
            'message': str(error),
            'error_code': error.error_code,
            'status_code': error.status_code
        }
        if error.retryable:
            response['retryable'] = True
        return jsonify(response), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        logger.exception("Unhandled database error")
        return jsonify({'error': True, 'message': 'Internal server error', 'error_code': 'DEPENDENCY_ERROR',
                        'status_code': 500}), 500

    @app.errorhandler(413)
    def handle_too_large(error):
        return jsonify({'error': True, 'message': 'Uploaded file is too large', 'error_code': 'FILE_TOO_LARGE',
                        'status_code': 413}), 413

    @app.errorhandler(500)
    def handle_internal_error(error):
        return jsonify({'error': True, 'message': 'Internal server error', 'status_code': 500}), 500


def register_commands(app):
    @app.cli.command('purge-invitations')
    def purge_invitations():
        """Delete invitations whose expiry has passed."""
        removed = InviteService.purge_expired()
        click.echo(f"Removed {removed} expired invitations")


if __name__ == '__main__':
    create_app().run()
