
# CORS configuration
import logging

from flask import request
from flask_cors import CORS

logger = logging.getLogger(__name__)


def configure_cors(app):
    # Browser clients call these endpoints from any origin; no credentials are involved
    CORS(app, resources={
        r"/api/*": {"origins": "*"},
        r"/.netlify/functions/*": {"origins": "*"},
    },
        methods=["POST", "OPTIONS", "GET"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
        max_age=86400,
        supports_credentials=False,
        send_wildcard=True,
    )

    @app.after_request
    def log_cors(response):
        if request.method == "OPTIONS":
            logger.debug(f"CORS preflight - Origin: {request.headers.get('Origin')} -> {response.status_code}")
        return response

    return app
