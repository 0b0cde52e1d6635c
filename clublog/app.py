import atexit
import os

from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask, Response, has_request_context, jsonify, request

from clublog.config import Config
from clublog.event_log import parse_level
from clublog.observability import build_observability


def _request_origin():
    if not has_request_context():
        return {"location": None, "client": None}
    return {
        "location": request.referrer or request.path,
        "client": request.headers.get("User-Agent"),
    }


def _json_body():
    """Request body as a dict; None when the body is JSON but not an object."""
    body = request.get_json(force=True, silent=True)
    if body is None:
        return {}
    return body if isinstance(body, dict) else None


def _not_an_object():
    return jsonify({"status": "invalid", "errors": ["expected a JSON object"]}), 400


def create_app(config=None, store=None, scheduler=None):
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        config = Config(os.environ.get("CONFIG_PATH", "config.yaml"))

    # APScheduler runs the deferred login redirects
    if scheduler is None:
        scheduler = BackgroundScheduler()
        scheduler.start()
        atexit.register(scheduler.shutdown)

    obs = build_observability(
        config,
        store=store,
        scheduler=scheduler,
        origin_provider=_request_origin,
    )
    event_log = obs.event_log
    classifier = obs.classifier

    # Store components on app for access in tests
    app.config["components"] = {
        "config": config,
        "event_log": event_log,
        "classifier": classifier,
        "feed": obs.feed,
        "navigation": obs.navigation,
    }

    # --- Routes ---

    @app.route("/health")
    def health():
        return jsonify({
            "status": "healthy",
            "current_stored": len(event_log),
            "counts": event_log.counts(),
            "max_logs": event_log.max_logs,
        })

    @app.route("/api/logs", methods=["GET"])
    def list_logs():
        level = request.args.get("level") or None
        if level == "all":
            level = None
        text = request.args.get("q", "")
        try:
            entries = event_log.search(text, level) if text else event_log.query(level)
        except ValueError as exc:
            return jsonify({"status": "invalid", "errors": [str(exc)]}), 400
        return jsonify({
            "count": len(entries),
            "counts": event_log.counts(),
            "logs": [entry.to_dict() for entry in entries],
        })

    @app.route("/api/logs", methods=["POST"])
    def record_log():
        body = _json_body()
        if body is None:
            return _not_an_object()

        errors = []
        try:
            level = parse_level(body.get("level"))
        except ValueError as exc:
            errors.append(str(exc))
        message = body.get("message")
        if not isinstance(message, str) or not message.strip():
            errors.append("message is required")
        if errors:
            return jsonify({"status": "invalid", "errors": errors}), 400

        event_log.record(level, message, body.get("data"))
        return jsonify({"status": "accepted"}), 201

    @app.route("/api/logs", methods=["DELETE"])
    def clear_logs():
        event_log.clear()
        event_log.info("All logs cleared by admin")
        return jsonify({"status": "cleared"})

    @app.route("/api/logs/export")
    def export_logs():
        export = event_log.export()
        event_log.info("Logs exported by admin")
        return Response(
            export.content,
            mimetype="application/json",
            headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
        )

    @app.route("/api/failures", methods=["POST"])
    def report_failure():
        body = _json_body()
        if body is None:
            return _not_an_object()
        result = classifier.classify_and_handle(body.get("error"), body.get("context", ""))
        return jsonify(result.to_dict())

    @app.route("/api/failures/validation", methods=["POST"])
    def report_validation_failure():
        body = _json_body()
        if body is None:
            return _not_an_object()
        result = classifier.classify_validation_errors(body.get("errors"), body.get("context", ""))
        return jsonify(result.to_dict())

    @app.route("/api/notifications")
    def notifications():
        return jsonify(obs.feed.drain())

    return app


# For gunicorn: `gunicorn 'clublog.app:create_app()'`
if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=5000, debug=True)
