import os
import logging
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
from flask import Flask, request, jsonify

from linkport.application.matching import TrackMatcher
from linkport.application.pipeline import ConversionPipeline
from linkport.crosscutting.config import Settings, load_settings
from linkport.crosscutting.logging import log_error, setup_logging
from linkport.crosscutting.reporting import batch_to_json, track_from_json
from linkport.domain.entities import MatchBatch, Track
from linkport.domain.errors import (
    InvalidUrl, LinkPortError, NotFound, PlaylistParseError, RateLimited, UnsupportedPlatform
)
from linkport.interfaces.factory import build_pipeline


def error_response(error: Exception) -> Tuple[Dict[str, Any], int]:
    """Map a domain error to an HTTP error body and status code."""
    if isinstance(error, (InvalidUrl, UnsupportedPlatform)):
        return {'error': 'Invalid request', 'details': str(error)}, 400
    if isinstance(error, NotFound):
        return {'error': 'Playlist not found', 'details': str(error)}, 404
    if isinstance(error, RateLimited):
        return {
            'error': 'Rate limited by platform',
            'details': str(error),
            'retryAfterMs': error.retry_after_ms,
        }, 429
    if isinstance(error, PlaylistParseError):
        return {'error': 'Failed to parse playlist', 'details': str(error)}, 502
    if isinstance(error, LinkPortError):
        return {'error': 'Platform request failed', 'details': str(error)}, 502
    return {'error': 'Failed to convert playlist', 'details': str(error)}, 500


class HTTPServer:
    """HTTP API for LinkPort: playlist conversion, matching and health checks."""

    def __init__(self, host: str = 'localhost', port: int = 3001, debug: bool = False,
                 settings: Optional[Settings] = None,
                 pipeline: Optional[ConversionPipeline] = None):
        """Initialize HTTP server.

        Args:
            host: Bind address
            port: Bind port
            debug: Flask debug mode
            settings: Runtime settings; loaded from the environment when omitted
            pipeline: Conversion pipeline; built from settings when omitted
        """
        self.host = host
        self.port = port
        self.debug = debug
        self.settings = settings or load_settings()
        self.pipeline = pipeline or build_pipeline(self.settings)
        self.matcher = TrackMatcher.from_settings(self.settings)
        self.app = Flask(__name__)
        self.logger = logging.getLogger(__name__)

        # Version info
        self.version = "0.1.0"
        self.commit = os.getenv('GIT_COMMIT', 'unknown')

        self._setup_routes()

    def _setup_routes(self) -> None:
        """Setup Flask routes."""

        @self.app.route('/api/health', methods=['GET'])
        def health_check():
            """Health check endpoint."""
            return jsonify({
                'status': 'ok',
                'version': self.version,
                'commit': self.commit,
                'timestamp': datetime.now(timezone.utc).isoformat(),
                'message': 'LinkPort API is running'
            }), 200

        @self.app.route('/api/test', methods=['GET'])
        def test_endpoint():
            return jsonify({
                'message': 'LinkPort API is working!',
                'endpoints': [
                    'POST /api/convert - Convert playlist',
                    'POST /api/match - Match tracks against candidate lists',
                    'GET /api/health - Health check',
                    'GET /api/test - This endpoint'
                ]
            }), 200

        @self.app.route('/api/convert', methods=['POST'])
        def convert():
            """Convert a playlist URL into a mirror playlist on the target platform."""
            body = request.get_json(silent=True) or {}
            source_url = body.get('sourceUrl')
            target_platform = body.get('targetPlatform')

            if not source_url or not target_platform:
                return jsonify({
                    'error': 'Missing required parameters',
                    'details': 'Both sourceUrl and targetPlatform are required'
                }), 400

            self.logger.info(f"Conversion request: {source_url} -> {target_platform}")
            try:
                report = self.pipeline.convert(source_url, target_platform)
            except Exception as e:
                log_error(self.logger, 'Conversion failed', e, source_url=source_url,
                          target_platform=target_platform)
                body, status = error_response(e)
                return jsonify(body), status

            return jsonify(report.to_json()), 200

        @self.app.route('/api/match', methods=['POST'])
        def match():
            """Score explicit candidate lists against source tracks."""
            body = request.get_json(silent=True)
            if not isinstance(body, dict):
                return jsonify({'error': 'Invalid request', 'details': 'Expected a JSON object'}), 400

            try:
                tracks, candidates = self._parse_match_request(body)
            except (KeyError, TypeError, ValueError) as e:
                return jsonify({'error': 'Invalid request', 'details': str(e)}), 400

            batch = MatchBatch([self.matcher.select_best(t, c) for t, c in zip(tracks, candidates)])
            return jsonify(batch_to_json(batch)), 200

        @self.app.route('/', methods=['GET'])
        def root():
            """Root endpoint with basic info."""
            return jsonify({
                'service': 'LinkPort HTTP Interface',
                'version': self.version,
                'endpoints': {
                    'health': '/api/health',
                    'test': '/api/test',
                    'convert': '/api/convert',
                    'match': '/api/match'
                }
            }), 200

    @staticmethod
    def _parse_match_request(body: Dict[str, Any]) -> Tuple[List[Track], List[List[Track]]]:
        raw_tracks = body.get('tracks')
        raw_candidates = body.get('candidates')
        if not isinstance(raw_tracks, list) or not isinstance(raw_candidates, list):
            raise ValueError("Both tracks and candidates must be lists")
        if len(raw_tracks) != len(raw_candidates):
            raise ValueError(
                f"tracks and candidates must have the same length ({len(raw_tracks)} != {len(raw_candidates)})"
            )
        tracks = [track_from_json(t) for t in raw_tracks]
        candidates = []
        for group in raw_candidates:
            if not isinstance(group, list):
                raise ValueError("Each candidates entry must be a list of tracks")
            candidates.append([track_from_json(c) for c in group])
        return tracks, candidates

    def run(self) -> None:
        """Run the HTTP server."""
        setup_logging(self.settings.log_level, self.settings.log_file)
        self.logger.info(f"Starting LinkPort HTTP server on {self.host}:{self.port}")
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug
        )


def create_app(settings: Optional[Settings] = None,
               pipeline: Optional[ConversionPipeline] = None) -> Flask:
    """Create Flask app for testing."""
    server = HTTPServer(settings=settings, pipeline=pipeline)
    return server.app


if __name__ == '__main__':
    server = HTTPServer()
    server.run()
