"""
Business Card Processing API - Flask Application Entry Point.

Extracts structured contact fields from business card images with local OCR
and heuristics, optionally refined by Gemini.
"""

import json
import logging
import os

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from flask_cors import CORS

from config import get_config
from api.routes import api_bp

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """Application factory for creating Flask app.

    Args:
        config_name: Configuration name (development, production, testing)

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)

    # Load configuration
    config_class = get_config(config_name)
    config_class.init_app(app)

    # Enable CORS
    CORS(app, resources={
        r"/api/*": {
            "origins": "*",
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"]
        }
    })

    # Register blueprints
    app.register_blueprint(api_bp)

    @app.route("/")
    def index():
        """API information endpoint."""
        return jsonify({
            "name": "Business Card Processing API",
            "version": "2.0.0",
            "description": "Extract structured contact fields from business card images",
            "endpoints": {
                "health": "GET /api/health",
                "status": "GET /api/status",
                "enhancement": "GET /api/enhancement",
                "process": "POST /api/process",
                "parse_text": "POST /api/parse-text"
            }
        })

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        """Return HTTP errors (404, 405, 413, ...) as JSON, keeping their headers."""
        message = error.description
        if error.code == 413:
            message = f"File too large. Maximum size: {app.config['MAX_CONTENT_LENGTH'] // (1024 * 1024)}MB"
        response = error.get_response()
        response.data = json.dumps({
            "success": False,
            "error": message
        })
        response.content_type = "application/json"
        return response

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Return anything escaping a view as a JSON 500."""
        logger.error(f"Uncaught exception: {error}", exc_info=True)
        return jsonify({
            "success": False,
            "error": "An unexpected error occurred"
        }), 500

    logger.info(f"Application created with config: {config_class.__name__}")

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    # Get port from environment or default to 5000
    port = int(os.getenv("PORT", 5000))
    debug = os.getenv("CARD_API_DEBUG", "True").lower() == "true"

    logger.info(f"Starting server on port {port}, debug={debug}")

    app.run(
        host="0.0.0.0",
        port=port,
        debug=debug
    )
