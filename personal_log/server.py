#!/usr/bin/env python3
import logging
import os
import secrets

from flask import Flask, Response, current_app, jsonify, request

from .auth import StaticCredentialProvider, auth_bp, current_user, install_guard
from .config import Config
from .entry_store import EntryStore
from .exceptions import EntryStoreError, MediaNotFoundError, MediaStoreError
from .logger import setup_logger
from .media_store import MediaStore
from .models import entries_from_json

logger = logging.getLogger('personal_log.server')


def entry_store():
    return current_app.extensions['personal_log.entry_store']


def media_store():
    return current_app.extensions['personal_log.media_store']


def create_app(config=None, auth_provider=None):
    """Build the Flask application around one data directory"""
    config = config or Config.from_env()
    app = Flask(__name__)

    secret_key = config.secret_key
    if not secret_key:
        logger.warning("SECRET_KEY is not set; sessions will not survive a restart")
        secret_key = secrets.token_hex(32)
    app.config.update(
        SECRET_KEY=secret_key,
        PERMANENT_SESSION_LIFETIME=config.session_lifetime,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE='Lax',
    )
    if not (config.auth_user and config.auth_pass):
        logger.warning("AUTH_USER/AUTH_PASS are not set; nobody can sign in")

    app.extensions['personal_log.config'] = config
    app.extensions['personal_log.entry_store'] = EntryStore(config.entries_file)
    app.extensions['personal_log.media_store'] = MediaStore(config.media_dir)
    app.extensions['personal_log.auth_provider'] = auth_provider or StaticCredentialProvider(
        config.auth_user, config.auth_pass, name=config.auth_name)

    install_guard(app)
    app.register_blueprint(auth_bp)
    register_routes(app)
    return app


def register_routes(app):
    @app.route('/', methods=['GET'])
    def index():
        """Landing page for a signed-in user"""
        user = current_user()
        return jsonify({"status": "ok", "user": user.name})

    @app.route('/api/entries', methods=['GET'])
    def get_entries():
        """Get all journal entries"""
        try:
            entries = entry_store().load_all()
        except EntryStoreError:
            logger.exception("Failed to read entries")
            return jsonify({"error": "Failed to read entries"}), 500
        return jsonify([entry.to_dict() for entry in entries])

    @app.route('/api/entries', methods=['POST'])
    def save_entries():
        """Replace the whole entry list"""
        payload = request.get_json(silent=True)
        try:
            entries = entries_from_json(payload)
        except ValueError as e:
            logger.warning(f"Rejected entries payload: {e}")
            return jsonify({"error": "Invalid entries payload"}), 400

        try:
            entry_store().save_all(entries)
        except EntryStoreError:
            logger.exception("Failed to save entries")
            return jsonify({"error": "Failed to save entries"}), 500
        logger.info(f"Saved {len(entries)} entries")
        return jsonify({"success": True})

    @app.route('/api/media', methods=['POST'])
    def upload_media():
        """Store an uploaded file under the hash of its content"""
        upload = request.files.get('file')
        if upload is None or not upload.filename:
            return jsonify({"error": "No file provided"}), 400

        try:
            stored = media_store().put(upload.read(), upload.filename)
        except (MediaStoreError, OSError):
            logger.exception(f"Failed to upload {upload.filename!r}")
            return jsonify({"error": "Failed to upload file"}), 500
        return jsonify(stored.to_dict())

    @app.route('/api/media/<filename>', methods=['GET'])
    def get_media(filename):
        """Serve a stored blob inline"""
        try:
            data, content_type = media_store().get(filename)
        except MediaNotFoundError:
            return jsonify({"error": "File not found"}), 404
        except MediaStoreError:
            logger.exception(f"Failed to read media {filename}")
            return jsonify({"error": "Failed to read file"}), 500

        response = Response(data, status=200, content_type=content_type)
        response.headers['Content-Disposition'] = f'inline; filename="{filename}"'
        return response


def main():
    config = Config.from_env()
    setup_logger('personal_log', level=config.log_level, log_dir=config.log_dir)
    app = create_app(config)
    logger.info(f"Serving {config.data_dir} on {config.host}:{config.port}")
    # Run the server on local network
    app.run(host=config.host, port=config.port, debug=os.getenv('FLASK_DEBUG') == '1')


if __name__ == '__main__':
    main()
