"""
JSON HTTP API over the resolver service
"""
import time
import logging
import argparse
import threading

import requests
from flask import Flask, Response, jsonify, request

from .config import Settings, configure_logging
from .download import MediaDownloader
from .errors import (
    BrowserTimeout, DiscoveryTimeout, DownloadError, NoSuitableQuality, PaheError, PoolError,
    ResolutionTimeout,
)
from .service import PaheService, build_pool

logger = logging.getLogger(__name__)


def error_status(error):
    """HTTP status for a pipeline error"""
    if isinstance(error, PoolError):
        return 503
    if isinstance(error, (ResolutionTimeout, DiscoveryTimeout, BrowserTimeout)):
        return 504
    if isinstance(error, NoSuitableQuality):
        return 404
    if isinstance(error, DownloadError):
        return 502
    if error.category == "structure":
        return 502
    return 500


def create_app(service, downloader=None):
    app = Flask(__name__)
    # Option maps are returned in page order
    app.json.sort_keys = False

    # Suppress per-request werkzeug noise
    logging.getLogger('werkzeug').setLevel(logging.ERROR)

    def missing(*names):
        return jsonify({"error": f"Missing parameter(s): {', '.join(names)}"}), 400

    @app.after_request
    def add_cors_headers(response):
        response.headers['Access-Control-Allow-Origin'] = '*'
        response.headers['Access-Control-Allow-Methods'] = 'GET, OPTIONS'
        response.headers['Access-Control-Allow-Headers'] = 'Content-Type'
        return response

    @app.errorhandler(PaheError)
    def handle_pahe_error(error):
        status = error_status(error)
        logger.error(f"API: {request.path} failed ({status}): {error}")
        return jsonify({"error": str(error), "category": error.category}), status

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "pool": service.pool.state.value})

    @app.route("/search")
    def search():
        query = request.args.get("q", "").strip()
        if not query:
            return missing("q")
        logger.info(f"API: Received search request for '{query}'")
        return jsonify([entry.to_dict() for entry in service.search(query)])

    @app.route("/episodes")
    def episodes():
        session = request.args.get("session", "").strip()
        if not session:
            return missing("session")
        logger.info(f"API: Received episode list request for session '{session}'")
        return jsonify([ep.to_dict() for ep in service.list_episodes(session)])

    @app.route("/download-options")
    def download_options():
        anime_session = request.args.get("anime_session", "").strip()
        episode_session = request.args.get("episode_session", "").strip()
        if not anime_session or not episode_session:
            return missing("anime_session", "episode_session")
        logger.info(f"API: Received download options request for anime {anime_session}, episode {episode_session}")
        options = service.discover_options(anime_session, episode_session)
        return jsonify(options.to_dict())

    @app.route("/download-link")
    def download_link():
        pahewin_url = request.args.get("pahewin_url", "").strip()
        if not pahewin_url:
            return missing("pahewin_url")
        logger.info(f"API: Received download link request for {pahewin_url}")
        return jsonify({"url": service.resolve_link(pahewin_url).url})

    @app.route("/image-proxy")
    def image_proxy():
        image_url = request.args.get("url", "").strip()
        if not image_url:
            return missing("url")
        if downloader is None:
            return jsonify({"error": "Image proxy is disabled"}), 404
        content, content_type = downloader.fetch_image(image_url)
        return Response(content, content_type=content_type)

    return app


def start_keepalive(url, interval=20.0, delay=30.0, stop_event=None):
    """Ping url forever on a daemon thread so free hosting does not idle us out"""
    stop_event = stop_event or threading.Event()

    def loop():
        if stop_event.wait(delay):
            return
        logger.info(f"Starting self-ping routine to keep service alive at: {url}")
        while not stop_event.is_set():
            try:
                resp = requests.get(url, timeout=10)
                logger.info(f"Self-ping successful: Status {resp.status_code}")
            except requests.RequestException as e:
                logger.warning(f"Self-ping failed: {str(e)}")
            stop_event.wait(interval)

    thread = threading.Thread(target=loop, name="keepalive", daemon=True)
    thread.start()
    return stop_event


def open_pool_in_background(pool):
    """Open pool on a daemon thread so /health answers while browsers warm up"""
    def run():
        started = time.time()
        try:
            pool.open()
            logger.info(f"Browser pool ready in {time.time() - started:.1f}s")
        except Exception as e:
            logger.error(f"Browser pool failed to start: {str(e)}")

    thread = threading.Thread(target=run, name="pool-init", daemon=True)
    thread.start()
    return thread


def main(argv=None):
    parser = argparse.ArgumentParser(description="AnimePahe link resolver API")
    parser.add_argument("--host", help="Interface to bind")
    parser.add_argument("-p", "--port", type=int, help="Port to listen on (default: $PORT or 8080)")
    parser.add_argument("-w", "--workers", type=int, help="Number of pooled browser sessions")
    parser.add_argument("--browser", help="Path to a Chromium-based browser executable")
    parser.add_argument("--no-headless", action="store_true", help="Show browser windows")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    configure_logging(logging.DEBUG if args.debug else logging.INFO, settings.log_file)

    if args.workers:
        settings.pool_size = args.workers
    if args.no_headless:
        settings.headless = False
    settings = settings.with_browser(args.browser)
    host = args.host or settings.host
    port = args.port or settings.port

    pool = build_pool(settings)
    service = PaheService(pool, settings)
    app = create_app(service, MediaDownloader(settings))

    open_pool_in_background(pool)

    if settings.keepalive_url:
        start_keepalive(settings.keepalive_url, settings.keepalive_interval, settings.keepalive_delay)

    logger.info(f"API server starting on http://{host}:{port}")
    try:
        app.run(host=host, port=port, threaded=True)
    finally:
        pool.close(timeout=30)


if __name__ == "__main__":
    main()
