"""
Flask API server exposing the Smart Calendar tools over HTTP
"""
import logging
import signal
import sys
import time
from datetime import datetime
from threading import Thread

from flask import Flask, jsonify, request
from flask_cors import CORS

from config.settings import Config
from src.api.tool_dispatcher import TOOL_DEFINITIONS, ToolDispatcher
from src.scheduler.smart_scheduler import SmartScheduler
from utils.errors import FormatError, StorageError

logger = logging.getLogger(__name__)


class SmartCalendarAPI:
    """
    HTTP front for the tool dispatcher.

    ``POST /tools/<name>`` takes the flat argument object as its JSON body and
    returns whatever the tool returns. Malformed dates map to 400 and store
    failures to 503; every other failure is part of the tool's own payload.
    """

    def __init__(self, scheduler: SmartScheduler = None):
        self.config = Config()
        self.app = Flask(__name__)
        CORS(self.app)

        self.scheduler = scheduler if scheduler is not None else SmartScheduler()
        self.dispatcher = ToolDispatcher(self.scheduler)

        self.tool_calls = 0
        self.started_at = time.time()

        self._register_routes()

    def _register_routes(self):
        app = self.app

        @app.route('/health', methods=['GET'])
        def health():
            return jsonify({
                "status": "healthy",
                "timestamp": datetime.now().isoformat(),
                "calendar": type(self.scheduler.calendar).__name__,
            })

        @app.route('/status', methods=['GET'])
        def status():
            payload = {
                "status": "running",
                "tool_calls": self.tool_calls,
                "uptime": round(time.time() - self.started_at, 1),
            }
            payload.update(self.scheduler.get_status())
            return jsonify(payload)

        @app.route('/tools', methods=['GET'])
        def list_tools():
            return jsonify({"tools": TOOL_DEFINITIONS})

        @app.route('/tools/<name>', methods=['POST'])
        def call_tool(name):
            args = request.get_json(silent=True)
            if args is None:
                args = {}
            if not isinstance(args, dict):
                return jsonify({"error": "Tool arguments must be a JSON object"}), 400

            self.tool_calls += 1
            logger.info(f"🚀 Tool call #{self.tool_calls}: {name}")

            try:
                result = self.dispatcher.execute_tool(name, args)
            except FormatError as e:
                logger.warning(f"❌ Invalid input for {name}: {e}")
                return jsonify({"error": str(e)}), 400
            except StorageError as e:
                logger.error(f"❌ Storage failure in {name}: {e}")
                return jsonify({"error": str(e)}), 503

            return jsonify(result)

        @app.route('/persona', methods=['GET'])
        def persona():
            return jsonify(self.dispatcher.execute_tool("get_persona", {}))

        @app.errorhandler(404)
        def not_found(error):
            return jsonify({"error": "Endpoint not found"}), 404

        @app.errorhandler(500)
        def server_error(error):
            return jsonify({"error": "Internal server error"}), 500

    def _install_signal_handlers(self):
        def stop(signum, frame):
            logger.info(f"Signal {signum} received, stopping")
            self.shutdown()
            sys.exit(0)

        for signum in (signal.SIGINT, signal.SIGTERM):
            signal.signal(signum, stop)

    def _serve(self, host=None, port=None, debug=False):
        # the reloader would fork a second engine with its own drift worker
        self.app.run(
            host=host or self.config.API_HOST,
            port=port or self.config.API_PORT,
            debug=debug,
            threaded=True,
            use_reloader=False,
        )

    def run(self, host=None, port=None, debug=False):
        """Serve in the foreground until SIGINT/SIGTERM"""
        self._install_signal_handlers()
        self.started_at = time.time()

        logger.info(f"Smart Calendar API listening on "
                    f"{host or self.config.API_HOST}:{port or self.config.API_PORT}")
        logger.info(f"Backend: {Config.get_backend_config()}")

        try:
            self._serve(host, port, debug)
        except OSError as e:
            logger.error(f"Could not start server: {e}")
            raise

    def run_background(self, host=None, port=None) -> Thread:
        thread = Thread(target=self._serve, args=(host, port), daemon=True)
        thread.start()
        logger.info("Smart Calendar API started in background thread")
        return thread

    def shutdown(self):
        logger.info("Stopping Smart Calendar API")
        self.scheduler.close()


def create_app(scheduler: SmartScheduler = None) -> Flask:
    """Build the Flask app around ``scheduler`` (or a configured default)"""
    return SmartCalendarAPI(scheduler).app
