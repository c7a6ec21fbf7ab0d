import os
import logging
import secrets
from typing import Optional
from datetime import datetime
from flask import Flask, request, jsonify

from ytprofile.crosscutting.config import StrategySettings, load_settings
from ytprofile.domain.errors import (
    ConfigError, MalformedResponseError, TokenExchangeError, UpstreamError
)
from ytprofile.infrastructure.providers.youtube import YouTubeStrategy


VERSION = "0.1.0"


class HTTPServer:
    """HTTP server for ytprofile with health checks and the OAuth callback."""

    def __init__(self, host: str = 'localhost', port: int = 3000, debug: bool = False,
                 settings: Optional[StrategySettings] = None,
                 strategy: Optional[YouTubeStrategy] = None):
        """Initialize HTTP server."""
        self.host = host
        self.port = port
        self.debug = debug
        self.app = Flask(__name__)
        self.logger = logging.getLogger(__name__)

        self.version = VERSION
        self.commit = os.getenv('GIT_COMMIT', 'unknown')

        self.settings = settings or load_settings()
        self.strategy = strategy or YouTubeStrategy.from_settings(self.settings)
        self._strategy_injected = strategy is not None

        self._setup_routes()

    def _require_client(self) -> None:
        if not self._strategy_injected:
            self.settings.require_client()

    def _setup_routes(self) -> None:
        """Setup Flask routes."""

        @self.app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint."""
            return jsonify({
                'status': 'healthy',
                'version': self.version,
                'commit': self.commit,
                'timestamp': datetime.now().isoformat()
            }), 200

        @self.app.route('/auth/youtube', methods=['GET'])
        def youtube_auth():
            """Build the YouTube consent URL."""
            try:
                self._require_client()
            except ConfigError as e:
                self.logger.error(f"YouTube auth misconfigured: {e}")
                return jsonify({'error': 'YouTube client not configured', 'details': str(e)}), 500

            options = {}
            overrides = {
                key: request.args[key]
                for key in ('access_type', 'approval_prompt')
                if request.args.get(key)
            }
            if overrides:
                options['authorization_params'] = overrides

            state = request.args.get('state') or secrets.token_urlsafe(16)
            auth_url = self.strategy.authorize_url(state=state, options=options)

            return jsonify({
                'auth_url': auth_url,
                'state': state,
                'redirect_uri': self.settings.redirect_uri
            }), 200

        @self.app.route('/callback', methods=['GET'])
        def oauth_callback():
            """OAuth callback endpoint: exchange the code and return the profile."""
            code = request.args.get('code')
            error = request.args.get('error')

            if error:
                self.logger.error(f"OAuth error: {error}")
                return jsonify({
                    'error': 'OAuth authorization failed',
                    'details': error
                }), 400

            if not code:
                return jsonify({
                    'error': 'Missing authorization code'
                }), 400

            try:
                self._require_client()
                _, profile = self.strategy.authenticate(code)
            except ConfigError as e:
                self.logger.error(f"OAuth callback misconfigured: {e}")
                return jsonify({'error': 'YouTube client not configured', 'details': str(e)}), 500
            except TokenExchangeError as e:
                return jsonify({
                    'error': 'Failed to exchange code for tokens',
                    'details': str(e)
                }), 502
            except (UpstreamError, MalformedResponseError) as e:
                return jsonify({
                    'error': 'Failed to load YouTube profile',
                    'stage': e.stage,
                    'details': str(e)
                }), 502

            self.logger.info(f"Profile loaded for channel {profile.id} with {len(profile.playlists)} playlists")
            return jsonify(profile.to_dict()), 200

        @self.app.route('/', methods=['GET'])
        def root():
            """Root endpoint with basic info."""
            return jsonify({
                'service': 'ytprofile HTTP Interface',
                'version': self.version,
                'endpoints': {
                    'health': '/health',
                    'youtube_auth': '/auth/youtube',
                    'oauth_callback': '/callback'
                }
            }), 200

    def run(self) -> None:
        """Run the HTTP server."""
        self.logger.info(f"Starting ytprofile HTTP server on {self.host}:{self.port}")
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug
        )


def create_app(settings: Optional[StrategySettings] = None,
               strategy: Optional[YouTubeStrategy] = None) -> Flask:
    """Create Flask app for testing."""
    server = HTTPServer(settings=settings, strategy=strategy)
    return server.app
