"""
Flask REST API for the restroom monitoring dashboard.

Routes mirror the dashboard's polling endpoints. The engine is injected into
the app factory so tests can drive a deterministic engine without a ticker.
"""

import structlog
from flask import Flask, jsonify, request
from flask_cors import CORS

from adapters.storage.json_file import JsonFileRecordStore
from core.config import AppConfig, get_config
from core.domain.errors import InternalInconsistencyError, InvalidRequestError, NotFoundError
from core.logging import configure_logging
from core.services.engine import MonitoringEngine

logger = structlog.get_logger(__name__)


def _facility_query() -> str | None:
    """`facilityId` query parameter; `restroomId` is accepted for older clients."""
    return request.args.get("facilityId") or request.args.get("restroomId")


def create_app(engine: MonitoringEngine, config: AppConfig | None = None) -> Flask:
    """
    Factory function to create Flask app with injected engine.
    """
    config = config or engine.config
    app = Flask(__name__)
    app.config["engine"] = engine
    app.json.sort_keys = False

    CORS(app, origins=config.api.allowed_origins)

    # --- Error mapping ---

    @app.errorhandler(NotFoundError)
    def handle_not_found(error: NotFoundError):
        return jsonify({"error": str(error)}), 404

    @app.errorhandler(InvalidRequestError)
    def handle_invalid(error: InvalidRequestError):
        return jsonify({"error": str(error)}), 400

    @app.errorhandler(InternalInconsistencyError)
    def handle_inconsistency(error: InternalInconsistencyError):
        logger.error("internal_inconsistency", error=str(error), path=request.path)
        return jsonify({"error": "Internal inconsistency detected"}), 500

    # --- Facilities ---

    @app.route("/api/restrooms")
    def list_restrooms():
        return jsonify([summary.to_wire() for summary in engine.list_facilities()])

    @app.route("/api/restrooms/<facility_id>/toilets")
    def restroom_toilets(facility_id: str):
        return jsonify(engine.toilet_status(facility_id).to_wire())

    @app.route("/api/restrooms/<facility_id>/toilets/<stall_id>/clean", methods=["POST"])
    def clean_stall(facility_id: str, stall_id: str):
        stall = engine.mark_cleaned(facility_id, stall_id)
        return jsonify({"message": "Stall cleaned successfully", "stall": stall.to_wire()}), 200

    # --- Live data ---

    @app.route("/api/alerts/<facility_id>")
    def facility_alerts(facility_id: str):
        return jsonify([alert.to_wire() for alert in engine.alerts_for(facility_id)])

    @app.route("/api/environment")
    def environment():
        return jsonify(engine.current_environment(_facility_query()).to_wire())

    @app.route("/api/supplies")
    def supplies():
        return jsonify(engine.current_supplies(_facility_query()).to_wire())

    @app.route("/api/flow")
    def flow():
        return jsonify(engine.current_flow(_facility_query()).to_wire())

    # --- Feedback ---

    @app.route("/api/feedback", methods=["GET"])
    def list_feedback():
        return jsonify([item.to_wire() for item in engine.list_feedback()])

    @app.route("/api/feedback", methods=["POST"])
    def post_feedback():
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            raise InvalidRequestError("Request body must be a JSON object")
        item = engine.submit_feedback(payload)
        return jsonify(item.to_wire()), 201

    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok", **engine.status()})

    return app


def main() -> None:
    """Load config, start the engine and serve the API."""
    config = get_config()
    configure_logging(config.logging)

    store = None
    if config.storage.persist:
        store = JsonFileRecordStore(config.storage.data_dir, "restrooms")

    engine = MonitoringEngine(config, store=store)
    app = create_app(engine, config)

    engine.start()
    logger.info("api_starting", host=config.api.host, port=config.api.port)
    try:
        app.run(host=config.api.host, port=config.api.port, debug=False, threaded=True)
    finally:
        engine.stop()


if __name__ == "__main__":
    main()
