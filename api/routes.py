"""
API routes for Business Card Processing API.

Flask REST API endpoints for extracting contact fields from business cards.
"""

import asyncio
import logging
from typing import Any, Mapping, Optional

from flask import Blueprint, current_app, jsonify, request
from werkzeug.utils import secure_filename

from card_extractor import (
    EasyOCRProvider,
    ExtractionOrchestrator,
    GeminiCardExtractor,
    OcrFailed,
    Success,
)
from config import Config

logger = logging.getLogger(__name__)

# Create Blueprint
api_bp = Blueprint("api", __name__, url_prefix="/api")

EXTENSION_KEY = "card_extractor"


def build_orchestrator(settings: Mapping[str, Any]) -> ExtractionOrchestrator:
    """Build the extraction pipeline from Flask configuration.

    Args:
        settings: Flask app.config (or any mapping with the same keys)

    Returns:
        ExtractionOrchestrator instance
    """
    ocr_provider = EasyOCRProvider(
        languages=settings["OCR_LANGUAGES"],
        gpu=settings["OCR_GPU"],
        model_dir=settings["OCR_MODEL_DIR"],
        min_confidence=settings["OCR_MIN_CONFIDENCE"],
        max_dimension=settings["OCR_MAX_DIMENSION"],
        enhance_images=settings["OCR_ENHANCE_IMAGES"],
    )

    remote_client = None
    if settings.get("GOOGLE_API_KEY"):
        remote_client = GeminiCardExtractor(
            api_key=settings["GOOGLE_API_KEY"],
            model=settings["GEMINI_MODEL"],
            timeout=settings["AI_TIMEOUT"],
            send_image=settings["AI_SEND_IMAGE"],
            language=settings["AI_LANGUAGE"],
        )
    else:
        logger.info("Gemini API key not configured. Using local parsing only.")

    return ExtractionOrchestrator(
        ocr_provider=ocr_provider,
        remote_client=remote_client,
        enable_enhancement=settings["AI_ENHANCEMENT"],
        # Leave Gemini's own timeout room to report first
        remote_timeout=settings["AI_TIMEOUT"] + 5.0,
    )


def get_pipeline() -> ExtractionOrchestrator:
    """Get or create the pipeline of the current app.

    Returns:
        ExtractionOrchestrator instance
    """
    pipeline = current_app.extensions.get(EXTENSION_KEY)
    if pipeline is None:
        pipeline = build_orchestrator(current_app.config)
        current_app.extensions[EXTENSION_KEY] = pipeline
        logger.info(f"Pipeline initialized with AI enhancement: {pipeline.is_enhancement_available()}")
    return pipeline


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed.

    Args:
        filename: Name of the file

    Returns:
        True if allowed, False otherwise
    """
    return Config.is_allowed_file(filename)


def _parse_flag(value: Any) -> Optional[bool]:
    """Interpret an optional true/false flag; None keeps the pipeline default."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("true", "1", "yes")


@api_bp.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint.

    Returns:
        JSON with health status
    """
    return jsonify({
        "success": True,
        "status": "healthy",
        "message": "Business Card Processing API is running",
        "version": "2.0.0"
    }), 200


@api_bp.route("/status", methods=["GET"])
def get_status():
    """Get API and pipeline status.

    Returns:
        JSON with status information
    """
    try:
        pipeline = get_pipeline()
        status = pipeline.get_status()

        return jsonify({
            "success": True,
            "data": {
                "api_status": "running",
                "pipeline_status": status,
                "api_keys_configured": Config.get_api_status()
            }
        }), 200

    except Exception as e:
        logger.error(f"Error getting status: {str(e)}")
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500


@api_bp.route("/enhancement", methods=["GET"])
def enhancement_status():
    """Report whether AI enhancement can run right now."""
    pipeline = get_pipeline()
    return jsonify({
        "success": True,
        "available": pipeline.is_enhancement_available()
    }), 200


@api_bp.route("/process", methods=["POST"])
def process_single():
    """Process a single business card image.

    Expects:
        - multipart/form-data with 'file' field
        - Optional query param: enhance=true/false (default: configured AI_ENHANCEMENT)

    Returns:
        JSON with extracted contact data; 422 when no text was found on the card
    """
    # Check if file is present
    if "file" not in request.files:
        return jsonify({
            "success": False,
            "error": "No file provided. Use 'file' field in form-data."
        }), 400

    file = request.files["file"]

    if file.filename == "":
        return jsonify({
            "success": False,
            "error": "No file selected"
        }), 400

    if not allowed_file(file.filename):
        return jsonify({
            "success": False,
            "error": f"File type not allowed. Allowed: {', '.join(sorted(Config.ALLOWED_EXTENSIONS))}"
        }), 400

    image = file.read()
    if not image:
        return jsonify({
            "success": False,
            "error": "Uploaded file is empty"
        }), 400

    enhance = _parse_flag(request.args.get("enhance"))
    filename = secure_filename(file.filename)
    logger.info(f"Processing uploaded file: {filename} ({len(image)} bytes, enhance={enhance})")

    pipeline = get_pipeline()
    outcome = asyncio.run(pipeline.process(image, enhance=enhance))

    if isinstance(outcome, Success):
        status_code = 200
    elif isinstance(outcome, OcrFailed):
        status_code = 422
    else:
        status_code = 500
        logger.error(f"Processing failed for {filename}: {outcome.error}")

    return jsonify(outcome.to_dict()), status_code


@api_bp.route("/parse-text", methods=["POST"])
def parse_text():
    """Parse raw text (skip OCR).

    Expects:
        - JSON body with 'text' field
        - Optional 'enhance' field (or query param): true/false

    Returns:
        JSON with parsed contact data
    """
    data = request.get_json(silent=True)

    if not isinstance(data, dict) or not isinstance(data.get("text"), str) or not data["text"].strip():
        return jsonify({
            "success": False,
            "error": "No text provided. Send JSON with 'text' field."
        }), 400

    enhance = _parse_flag(data.get("enhance", request.args.get("enhance")))

    try:
        pipeline = get_pipeline()
        fields = asyncio.run(pipeline.enhance_text(data["text"], enhance=enhance))

        return jsonify({
            "success": True,
            "contact_data": fields.to_dict(),
            "source": fields.source.value,
            "confidence": round(fields.confidence, 2)
        }), 200

    except Exception as e:
        logger.error(f"Error parsing text: {str(e)}", exc_info=True)
        return jsonify({
            "success": False,
            "error": str(e)
        }), 500
