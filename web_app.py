#!/usr/bin/env python3
"""
Flask application for the feed manager functions.
Endpoints: feed URL validation (safe outbound fetch) and GitHub Actions workflow dispatch.
"""

from flask import Flask, jsonify, request
from werkzeug.middleware.proxy_fix import ProxyFix
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import logging
import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import requests
from dotenv import load_dotenv

from cors_config import configure_cors
from feedgate.config import DispatchConfig, ServiceSettings
from feedgate.contracts.request_bodies import (
    dispatch_error,
    feed_check_error,
    validate_dispatch_request,
    validate_feed_check_request,
)
from feedgate.dispatch.github_actions import DispatchRequest, GitHubWorkflowDispatcher
from feedgate.errors import ConfigurationError, FetchError, InputError, UpstreamAPIError
from feedgate.fetching.feed_check import check_feed, transport_error_message

# Load environment variables from .env file
load_dotenv()

settings = ServiceSettings.from_env()

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)

VERSION = "1.0.0"
GITHUB_CONFIG_MISSING = "GitHub configuration missing. Please check environment variables."

# Dispatch is optional: the feed check keeps working without GitHub credentials
dispatcher: Optional[GitHubWorkflowDispatcher] = None
try:
    dispatcher = GitHubWorkflowDispatcher(DispatchConfig.from_env())
except ConfigurationError as e:
    logger.warning(f"Workflow dispatch disabled: {e.message}")

app = Flask(__name__)
# The FaaS gateway forwards X-Forwarded-For / -Proto
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)
app = configure_cors(app)
app.json.sort_keys = False
app.config['FEED_CHECK'] = settings.feed_check
app.config['RATELIMIT_ENABLED'] = settings.rate_limit_enabled

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
)
limiter.init_app(app)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def _error(error: str, status: int, **extra: Any):
    body: Dict[str, Any] = {'success': False, 'error': error}
    body.update(extra)
    body['timestamp'] = _utc_timestamp()
    return jsonify(body), status


def _read_json_body() -> Tuple[Optional[Any], bool]:
    """Parse the raw request body; an empty body counts as {}.

    Returns (payload, ok). Content-Type is ignored since gateway clients
    do not always set it.
    """
    raw = request.get_data(as_text=True)
    if not raw.strip():
        return {}, True
    try:
        return json.loads(raw), True
    except ValueError:
        return None, False


def add_security_headers(response):
    """Add security headers suitable for a JSON-only API"""
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
    return response

app.after_request(add_security_headers)


# routing fails before an endpoint is bound, so match on the path
FUNCTION_PATHS = {
    '/api/test-rss', '/.netlify/functions/test-rss',
    '/api/trigger-github', '/.netlify/functions/trigger-github',
}


@app.errorhandler(405)
def method_not_allowed(e):
    logger.warning(f"Invalid method: {request.method} {request.path}")
    if request.path in FUNCTION_PATHS:
        return _error('Only POST requests allowed', 405, method=request.method)
    return _error('Method not allowed', 405, method=request.method)


@app.errorhandler(404)
def not_found(e):
    return _error('Not found', 404)


@app.errorhandler(429)
def rate_limited(e):
    logger.warning(f"Rate limit hit for {get_remote_address()} on {request.path}")
    return _error(f'Rate limit exceeded: {e.description}', 429)


@app.route('/api/health')
@limiter.exempt
def health_check():
    """API health check endpoint"""
    return jsonify({
        'status': 'healthy',
        'timestamp': _utc_timestamp(),
        'version': VERSION,
        'dispatch_configured': dispatcher is not None,
    })


@app.route('/api/test-rss', methods=['POST', 'OPTIONS'])
@app.route('/.netlify/functions/test-rss', methods=['POST', 'OPTIONS'])
@limiter.limit(lambda: settings.feed_check_rate_limit, exempt_when=lambda: request.method == 'OPTIONS')
def test_rss():
    """Check that a URL is reachable and looks like an RSS/Atom feed"""
    if request.method == 'OPTIONS':
        return jsonify({'message': 'CORS OK'})

    try:
        data, ok = _read_json_body()
        if not ok:
            logger.warning("Invalid JSON in request body")
            return _error('Invalid JSON in request body', 400)

        message = feed_check_error(data)
        if message:
            logger.warning(f"Rejected feed check body: {validate_feed_check_request(data)}")
            return _error(message, 400)

        url = data['url']
        logger.info(f"Testing RSS feed: {url}")
        outcome = check_feed(url, app.config['FEED_CHECK'])
        logger.info(f"RSS test completed for {url}: {outcome.message}")

        return jsonify({
            'success': True,
            'valid': outcome.valid,
            'status': outcome.status,
            'message': outcome.message,
            'contentType': outcome.content_type,
            'url': outcome.url,
            'matchedSignal': outcome.matched_signal,
            'truncated': outcome.truncated,
            'timestamp': _utc_timestamp(),
        })

    except InputError as e:
        logger.warning(f"Feed check refused: {e.message}")
        return _error(e.message, 400)
    except FetchError as e:
        logger.error(f"RSS test transport error ({e.kind}): {e.message}")
        return _error(transport_error_message(e), 500)
    except Exception as e:
        logger.error(f"RSS test error: {e}", exc_info=True)
        return _error(f'Error testing feed: {e}', 500)


@app.route('/api/trigger-github', methods=['POST', 'OPTIONS'])
@app.route('/.netlify/functions/trigger-github', methods=['POST', 'OPTIONS'])
@limiter.limit(lambda: settings.dispatch_rate_limit, exempt_when=lambda: request.method == 'OPTIONS')
def trigger_github():
    """Dispatch the feed scraper workflow on GitHub Actions"""
    if request.method == 'OPTIONS':
        return jsonify({'message': 'CORS preflight OK'})

    logger.info(f"GitHub trigger called - Origin: {request.headers.get('Origin')}")
    trigger_type = None
    try:
        data, ok = _read_json_body()
        if not ok:
            logger.warning("Invalid JSON in request body")
            return _error('Invalid JSON in request body', 400)

        message = dispatch_error(data)
        if message:
            logger.warning(f"Rejected dispatch body: {validate_dispatch_request(data)}")
            return _error(message, 400)

        dispatch_request = DispatchRequest.from_payload(data)
        trigger_type = dispatch_request.trigger_type

        if dispatcher is None:
            for name in DispatchConfig.REQUIRED_VARS:
                logger.warning(f"{name} exists: {bool(os.environ.get(name))}")
            return _error(GITHUB_CONFIG_MISSING, 500)

        outcome = dispatcher.dispatch(dispatch_request)
        logger.info(f"GitHub Action triggered successfully: {trigger_type}")
        return jsonify({
            'success': True,
            'message': f'GitHub Action triggered successfully for {outcome.trigger_type}',
            'trigger_type': outcome.trigger_type,
            'feed_id': outcome.feed_id,
            'repository': outcome.repository,
            'workflow': outcome.workflow,
            'timestamp': _utc_timestamp(),
        })

    except InputError as e:
        return _error(e.message, 400)
    except UpstreamAPIError as e:
        logger.error(f"GitHub API error {e.status_code}: {e.raw_body}")
        return _error(
            e.message, 500,
            github_status=e.status_code,
            github_response=e.raw_body,
            trigger_type=trigger_type,
            details=e.details,
        )
    except requests.RequestException as e:
        logger.error(f"GitHub API request failed: {e}")
        return _error('Internal server error', 500, message=str(e))
    except Exception as e:
        logger.error(f"Function error: {e}", exc_info=True)
        return _error('Internal server error', 500, message=str(e))


# Main execution block - local development server only
if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5002))
    debug = os.environ.get('FLASK_ENV') == 'development'

    logger.info(f"🌐 Starting feed functions on port {port}")
    logger.info(f"🔧 Debug mode: {debug}")
    logger.info(f"🔑 Workflow dispatch configured: {dispatcher is not None}")
    logger.info(f"⚡ Rate limiting enabled: {settings.rate_limit_enabled}")

    app.run(
        host='0.0.0.0',
        port=port,
        debug=debug,
        threaded=True
    )
