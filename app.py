import argparse
import logging
import os

from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.exceptions import RequestEntityTooLarge

from disease_engine import EngineConfig, LEAF_GATE_CONFIDENCE, analyze_image
from pixel_features import DEFAULT_MAX_SAMPLES, DecodeError

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s')
logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 16 * 1024 * 1024


def create_app(max_samples=None, leaf_gate=None):
    """Build the Flask app. Explicit arguments win over environment variables."""
    app = Flask(__name__)
    CORS(app)

    if max_samples is None:
        max_samples = int(os.environ.get('LEAF_MAX_SAMPLES', DEFAULT_MAX_SAMPLES))
    if leaf_gate is None:
        leaf_gate = float(os.environ.get('LEAF_GATE_CONFIDENCE', LEAF_GATE_CONFIDENCE))

    app.config['MAX_CONTENT_LENGTH'] = MAX_UPLOAD_BYTES
    app.config['ENGINE_CONFIG'] = EngineConfig(max_samples=max_samples, leaf_gate_confidence=leaf_gate)

    def run_analysis(payload):
        try:
            result = analyze_image(payload, app.config['ENGINE_CONFIG'])
        except DecodeError as e:
            logger.warning("Rejected undecodable image: %s", e)
            return jsonify({'error': 'Invalid image uploaded.'}), 400
        except Exception:
            logger.exception("Analysis failed")
            return jsonify({'error': 'Internal server error'}), 500
        return jsonify(result.to_dict()), 200

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(e):
        return jsonify({'error': 'Image exceeds the %d MB upload limit.' % (MAX_UPLOAD_BYTES // (1024 * 1024))}), 413

    @app.route('/', methods=['GET'])
    def home():
        return "Leaf triage API is running. POST an image to /api/detect or a data URL to /api/analyze.", 200

    @app.route('/health', methods=['GET'])
    def health():
        config = app.config['ENGINE_CONFIG']
        return jsonify({
            'status': 'ok',
            'leaf_gate': config.leaf_gate_confidence,
            'max_samples': config.max_samples,
        }), 200

    @app.route('/api/analyze', methods=['POST'])
    def analyze():
        """Accepts {"imageData": "data:image/...;base64,..."} as sent by the capture page."""
        body = request.get_json(silent=True) or {}
        image_data = body.get('imageData') if isinstance(body, dict) else None

        if not isinstance(image_data, str) or not image_data.startswith('data:image'):
            return jsonify({'error': 'Invalid image data'}), 400

        return run_analysis(image_data)

    @app.route('/api/detect', methods=['POST'])
    def detect():
        file = request.files.get('file') or request.files.get('image')
        if file is None:
            return jsonify({'error': 'Upload payload missing file.'}), 400

        if file.filename == '':
            return jsonify({'error': 'No selected file in upload.'}), 400

        logger.info("Analyzing upload %s", file.filename)
        return run_analysis(file.read())

    return app


def parse_args():
    parser = argparse.ArgumentParser(description="Leaf triage Flask server")
    parser.add_argument('--host', type=str, default='0.0.0.0', help='Interface to bind')
    parser.add_argument('--port', type=int, default=5000, help='Port to run the server on')
    parser.add_argument('--max-samples', type=int, default=None, help='Maximum pixels inspected per image')
    parser.add_argument('--leaf-gate', type=float, default=None, help='Leaf confidence required before disease scoring')
    parser.add_argument('--debug', action='store_true', help='Run Flask in debug mode')
    return parser.parse_args()


if __name__ == '__main__':
    args = parse_args()
    app = create_app(max_samples=args.max_samples, leaf_gate=args.leaf_gate)
    config = app.config['ENGINE_CONFIG']
    logger.info("Flask server starting on %s:%s (leaf_gate=%s, max_samples=%s)",
                args.host, args.port, config.leaf_gate_confidence, config.max_samples)
    app.run(host=args.host, port=args.port, debug=args.debug)
