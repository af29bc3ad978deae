import os
from flask import Flask, jsonify
from config.config import config
from reviewflow.database import init_db
from reviewflow.utils.logger import get_logger

logger = get_logger(__name__)


def create_app(config_name=None):
    """Application factory"""
    config_name = config_name or os.environ.get('FLASK_ENV', 'default')
    app = Flask(__name__)
    app.config.from_object(config.get(config_name, config['default']))

    init_db()

    from reviewflow.routes import availability, reviews, notifications
    app.register_blueprint(availability.bp, url_prefix='/api/availability')
    app.register_blueprint(reviews.bp, url_prefix='/api/reviews')
    app.register_blueprint(notifications.bp, url_prefix='/api/notifications')

    @app.route('/api/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok'}), 200

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    logger.info(f"ReviewFlow app created with '{config_name}' config")
    return app
