"""
Web server for Janitarr.
JSON API, live activity stream, and Prometheus metrics.
"""

import json
from typing import Iterator, Optional

from flask import Flask, Response, jsonify, request, stream_with_context

from .. import __version__
from ..activity import LogType, Subscription
from ..automation import CycleActiveError


class WebServer:
    """Flask web server."""

    # Seconds between keepalive comments on an idle event stream
    KEEPALIVE_SECONDS = 15.0

    def __init__(self, app_core):
        self.core = app_core
        self.config = app_core.config
        self.log = app_core.logger.get_logger('web')

        self.app = Flask(__name__)

        self._register_routes()
        self._register_api()

    def _register_routes(self):
        """Register non-API routes."""

        @self.app.route('/metrics')
        def metrics():
            return Response(self.core.metrics.format(),
                            mimetype='text/plain; version=0.0.4; charset=utf-8')

    def _register_api(self):
        """Register API endpoints."""

        # ============ Health ============
        @self.app.route('/api/health')
        def api_health():
            return jsonify({'status': 'ok', 'version': __version__})

        # ============ Config ============
        @self.app.route('/api/config', methods=['GET'])
        def api_get_config():
            return jsonify(self.config.to_dict())

        @self.app.route('/api/config', methods=['PATCH'])
        def api_update_config():
            data = request.get_json(silent=True)
            if not isinstance(data, dict):
                return jsonify({'success': False, 'message': 'Expected a JSON object'}), 400
            try:
                self.core.update_config(data)
            except (TypeError, ValueError) as e:
                return jsonify({'success': False, 'message': f'Invalid config: {e}'}), 400
            return jsonify(self.config.to_dict())

        @self.app.route('/api/servers/<server_id>/test', methods=['POST'])
        def api_test_server(server_id):
            return jsonify(self.core.test_server(server_id))

        # ============ Automation ============
        @self.app.route('/api/automation/status')
        def api_automation_status():
            return jsonify(self.core.get_status())

        @self.app.route('/api/automation/trigger', methods=['POST'])
        def api_automation_trigger():
            data = request.get_json(silent=True) or {}
            dry_run = bool(data.get('dryRun', False))
            try:
                self.core.trigger_cycle(dry_run=dry_run)
            except CycleActiveError as e:
                return jsonify({'success': False, 'message': str(e)}), 409
            return jsonify({'success': True, 'dryRun': dry_run}), 202

        # ============ Logs ============
        @self.app.route('/api/logs', methods=['GET'])
        def api_logs():
            limit = request.args.get('limit', 100, type=int)
            offset = request.args.get('offset', 0, type=int)
            log_type = request.args.get('type')
            server = request.args.get('server')
            if log_type and log_type not in LogType.ALL:
                return jsonify({'success': False, 'message': f'Unknown log type: {log_type}'}), 400
            entries = self.core.get_logs(limit=max(1, min(limit, 1000)), offset=max(0, offset),
                                         log_type=log_type, server_name=server)
            return jsonify([e.to_dict() for e in entries])

        @self.app.route('/api/logs', methods=['DELETE'])
        def api_clear_logs():
            self.core.clear_logs()
            return jsonify({'success': True})

        @self.app.route('/api/logs/stream')
        def api_logs_stream():
            subscription = self.core.activity.subscribe()
            server = request.args.get('server')
            return Response(stream_with_context(self._event_stream(subscription, server)),
                            mimetype='text/event-stream',
                            headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'})

    def _event_stream(self, subscription: Subscription,
                      server_filter: Optional[str] = None) -> Iterator[str]:
        """Yield SSE frames until the subscription closes or the client leaves."""
        try:
            while not subscription.closed:
                entry = subscription.get(timeout=self.KEEPALIVE_SECONDS)
                if entry is None:
                    if subscription.closed:
                        break
                    yield ": keepalive\n\n"
                    continue
                if server_filter and entry.server_name != server_filter:
                    continue
                yield f"event: log\ndata: {json.dumps(entry.to_dict())}\n\n"
        finally:
            self.core.activity.unsubscribe(subscription)

    def run(self, host: str = '0.0.0.0', port: int = 8080, debug: bool = False):
        """Start the server."""
        self.log.info(f"Starting web server on {host}:{port}")
        self.app.run(host=host, port=port, debug=debug, threaded=True, use_reloader=False)
