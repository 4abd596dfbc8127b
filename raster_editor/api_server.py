#!/usr/bin/env python3
"""
Raster Editor API Server
One endpoint per transform: upload an image, get the transformed PNG back as base64.
"""

import base64
import logging
import os

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, jsonify, request
from flask_cors import CORS

from .models.box import Box
from .models.image import Image
from .services.image_service import ImageService

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
ALLOWED_EXTENSIONS = set(os.getenv("ALLOWED_EXTENSIONS", "png,jpg,jpeg,gif,bmp,webp,tif,tiff").split(","))
MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "100")) * 1024 * 1024

app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

# Initialize services
image_service = ImageService()

logger = logging.getLogger(__name__)


class RequestError(ValueError):
    """Client-side problem with the request (reported as HTTP 400)."""


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def image_to_base64(image: Image) -> str | None:
    """Encode an Image as a PNG data URI (None for empty images)."""
    if image.width == 0 or image.height == 0:
        return None
    png_bytes = image_service.encode(image, fmt="PNG")
    return f"data:image/png;base64,{base64.b64encode(png_bytes).decode('utf-8')}"


def read_uploaded_image() -> Image:
    if 'image' not in request.files:
        raise RequestError('No image provided')
    file = request.files['image']
    if file.filename == '':
        raise RequestError('No file selected')
    if not allowed_file(file.filename):
        raise RequestError(f'Unsupported file type: {file.filename}')
    return image_service.load_bytes(file.read())


def int_field(name: str, default: int | None = None) -> int:
    raw = request.form.get(name)
    if raw is None or raw == '':
        if default is None:
            raise RequestError(f'Missing parameter: {name}')
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RequestError(f'Parameter {name} must be an integer') from None
    if value < 0:
        raise RequestError(f'Parameter {name} must be >= 0')
    return value


def image_response(image: Image):
    return jsonify({
        'success': True,
        'width': image.width,
        'height': image.height,
        'pixel_format': image.pixel_format().value,
        'image': image_to_base64(image),
    })


def run_transform(name: str, transform):
    """Shared error handling for the transform endpoints."""
    try:
        image = read_uploaded_image()
        logger.info(f"{name}: received {image.width}x{image.height} {image.pixel_format().name} image")
        return image_response(transform(image))
    except ValueError as e:
        logger.warning(f"{name} rejected: {e}")
        return jsonify({'success': False, 'message': str(e)}), 400
    except Exception as e:
        logger.error(f"{name} error: {e}")
        return jsonify({'success': False, 'message': f'Error in {name}: {str(e)}'}), 500


@app.route('/api/flip', methods=['POST'])
def flip_step():
    """Flip the uploaded image vertically."""
    return run_transform('flip', image_service.flip_image)


@app.route('/api/crop', methods=['POST'])
def crop_step():
    """Crop the uploaded image to the (clamped) box given in the form."""
    def transform(image: Image) -> Image:
        box = Box(
            x=int_field('x', 0),
            y=int_field('y', 0),
            width=int_field('width'),
            height=int_field('height'),
        )
        return image_service.crop_image(image, box)
    return run_transform('crop', transform)


@app.route('/api/resize', methods=['POST'])
def resize_step():
    """Bilinear resize of the uploaded image."""
    def transform(image: Image) -> Image:
        return image_service.resize_image(image, int_field('width'), int_field('height'))
    return run_transform('resize', transform)


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'Raster Editor API is running',
    })


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'error': f'File too large. Maximum size is {MAX_CONTENT_LENGTH // (1024*1024)}MB.'}), 413


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'error': 'Internal server error'}), 500


def main():
    # --- Centralized Logging Configuration ---
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "5000"))

    print("Starting Raster Editor API Server...")
    print(f"Max upload size: {MAX_CONTENT_LENGTH // (1024*1024)}MB")
    print("Endpoints:")
    print("   POST /api/flip")
    print("   POST /api/crop")
    print("   POST /api/resize")
    print("   GET  /api/health")
    app.run(host=host, port=port, debug=False)


if __name__ == '__main__':
    main()
