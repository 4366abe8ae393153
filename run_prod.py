#!/usr/bin/env python3
"""
Production runner for the MeetPoint API
- Serves the Flask API (meetpoint.app) with waitress, or over TLS with Werkzeug
- Loads .env for GOOGLE_MAPS_API_KEY and other settings

Usage:
  python3 run_prod.py

Environment:
  PORT=8000 (default)        # Port to bind
  HOST=0.0.0.0 (default)     # Host interface
  GOOGLE_MAPS_API_KEY=...    # Required for venue search and geocoding
  SSL_CERTFILE / SSL_KEYFILE # optional: serve HTTPS directly
  WSGI_THREADS=8             # waitress worker threads
"""

import logging
import os
import ssl
from pathlib import Path

from dotenv import load_dotenv
from werkzeug.middleware.proxy_fix import ProxyFix

PROJECT_ROOT = Path(__file__).resolve().parent

# Load env from .env before the app reads its settings
load_dotenv(dotenv_path=PROJECT_ROOT / '.env')

from meetpoint.app import app as api_app  # noqa: E402

logger = logging.getLogger('meetpoint.run_prod')

# Respect reverse proxy headers (X-Forwarded-*) when behind a proxy/HTTPS terminator
if os.getenv('TRUST_PROXY_HEADERS', '1') not in ('0', 'false', 'False', 'no', 'off'):
    # Trust a single proxy hop by default; tune via env
    x_for = int(os.getenv('PROXY_FIX_X_FOR', '1'))
    x_proto = int(os.getenv('PROXY_FIX_X_PROTO', '1'))
    x_host = int(os.getenv('PROXY_FIX_X_HOST', '1'))
    x_port = int(os.getenv('PROXY_FIX_X_PORT', '1'))
    x_prefix = int(os.getenv('PROXY_FIX_X_PREFIX', '1'))
    api_app.wsgi_app = ProxyFix(api_app.wsgi_app, x_for=x_for, x_proto=x_proto, x_host=x_host, x_port=x_port,
                                x_prefix=x_prefix)


def main():
    host = os.getenv('HOST', '0.0.0.0')
    try:
        port = int(os.getenv('PORT', '8000'))
    except ValueError:
        port = 8000

    if not api_app.config['MEETPOINT_SETTINGS'].has_api_key:
        logger.warning("GOOGLE_MAPS_API_KEY is not configured; only the geometry endpoints will work. "
                       "Set it in your environment or .env file.")

    ssl_cert = os.getenv('SSL_CERTFILE') or os.getenv('SSL_CERT')
    ssl_key = os.getenv('SSL_KEYFILE') or os.getenv('SSL_KEY')
    ssl_ca = os.getenv('SSL_CA_FILE') or os.getenv('SSL_CA')

    if ssl_cert and ssl_key:
        logger.info(f"Starting MeetPoint API (prod) on https://{host}:{port}")

        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        if ssl_ca:
            context.load_verify_locations(ssl_ca)
        context.load_cert_chain(certfile=ssl_cert, keyfile=ssl_key)

        # Use Werkzeug's run_simple to serve HTTPS directly
        from werkzeug.serving import run_simple
        run_simple(hostname=host, port=port, application=api_app, ssl_context=context, threaded=True)
    else:
        from waitress import serve

        logger.info(f"Starting MeetPoint API (prod) on http://{host}:{port} using waitress")
        serve(api_app, host=host, port=port, threads=int(os.getenv('WSGI_THREADS', '8')))


if __name__ == '__main__':
    main()
