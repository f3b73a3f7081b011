"""
app.py

Flask entrypoint for the deployment alert relay.

This file intentionally focuses on:
- Flask routing (ingestion endpoints + SSE stream + small JSON APIs)
- Minimal webhook plumbing (signature verification decorator + delegating to the event mapper)

Event normalization lives in `deployment_events.py`, retention in `notification_store.py`
and the fan-out to connected dashboards in `notification_hub.py`.
"""

import atexit
import json
import os
import threading
import traceback
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Flask, Response, jsonify, request, stream_with_context
from flask_cors import CORS

from alert_helpers import debug_dump, get_cors_origins, get_keepalive_interval, safe_get, utc_now_iso
from auth import requires_webhook_signature
from deployment_events import UNKNOWN_EVENT, map_event, provider_metadata
from notification_hub import NotificationHub
from notification_store import Notification, NotificationStore

LEGACY_DEFAULT_PROJECT = "Manual Notification"
WEBHOOK_DEFAULT_PROJECT = "unknown"
RECENT_LIMIT = 10

# OPTIONS and HEAD are answered by Flask itself: a CORS preflight must not create a notification.
ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def create_app(
    store: Optional[NotificationStore] = None,
    hub: Optional[NotificationHub] = None,
) -> Flask:
    load_dotenv()

    app = Flask(__name__)
    CORS(app, origins=get_cors_origins())

    notification_store = store if store is not None else NotificationStore()
    if hub is None:
        hub = NotificationHub(notification_store, keepalive_interval=get_keepalive_interval())
    notification_hub = hub
    app.extensions["notification_store"] = notification_store
    app.extensions["notification_hub"] = notification_hub

    # Store order == broadcast order, even with concurrent requests.
    ingest_lock = threading.Lock()

    def record_and_broadcast(
        project: str,
        event: str,
        timestamp: str,
        message: str,
        is_legacy: bool,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        with ingest_lock:
            notification = Notification(
                id=notification_store.next_id(),
                project=project,
                event=event,
                timestamp=timestamp,
                received_at=utc_now_iso(),
                message=message,
                is_legacy=is_legacy,
                provider_metadata=metadata,
            )
            notification_store.append(notification)
            clients_notified = notification_hub.publish(notification)
        return {
            "success": True,
            "received": notification.to_dict(),
            "playSound": True,
            "clientsNotified": clients_notified,
        }

    @app.post("/webhook")
    @requires_webhook_signature
    def railway_webhook():
        """
        Railway deployment webhook.

        Notes:
        - The signature (if any) is checked by the decorator on the raw body, before parsing.
        - Malformed JSON is rejected with 400 and nothing is stored or broadcast.
        """
        try:
            raw = request.get_data(cache=True)
            try:
                payload = json.loads(raw.decode("utf-8")) if raw else None
            except ValueError as e:
                return jsonify({"error": "Invalid JSON payload", "detail": str(e)}), 400
            if not isinstance(payload, dict):
                return jsonify({"error": "Invalid payload: expected JSON object"}), 400

            debug_dump(payload)
            mapped = map_event(payload)
            project_name = safe_get(safe_get(payload, "project"), "name")
            timestamp = safe_get(payload, "timestamp")

            result = record_and_broadcast(
                project=str(project_name).strip() if project_name else WEBHOOK_DEFAULT_PROJECT,
                event=mapped.kind,
                timestamp=str(timestamp) if timestamp else utc_now_iso(),
                message=mapped.message,
                is_legacy=False,
                metadata=provider_metadata(payload),
            )
            print(
                f"[webhook] project={result['received']['project']} event={mapped.kind} "
                f"clients={result['clientsNotified']} message={mapped.message}"
            )
            return jsonify(result)
        except Exception as e:
            traceback.print_exc()
            return jsonify({"error": "Webhook handler failed", "detail": str(e)}), 500

    @app.route("/notify", methods=ALL_METHODS)
    def legacy_notify():
        """
        Manual notification endpoint (query parameters, any HTTP method).
        Kept for build scripts that just `curl` a URL; it never fails validation.
        """
        try:
            project = (request.args.get("project", "") or "").strip() or LEGACY_DEFAULT_PROJECT
            event = (request.args.get("event", "") or "").strip() or UNKNOWN_EVENT
            timestamp = (request.args.get("timestamp", "") or "").strip() or utc_now_iso()
            message = request.args.get("message", "") or ""

            result = record_and_broadcast(
                project=project,
                event=event,
                timestamp=timestamp,
                message=message,
                is_legacy=True,
            )
            print(f"[notify] [{timestamp}] {project}: {event} clients={result['clientsNotified']}")
            return jsonify(result)
        except Exception as e:
            traceback.print_exc()
            return jsonify({"error": "Notification handler failed", "detail": str(e)}), 500

    @app.get("/events")
    def event_stream():
        """
        Server-Sent Events stream for the dashboards.

        First frames: `connected` then `history` (last 5 notifications), then `notification`
        frames as they arrive and a `ping` every keep-alive interval.
        """
        @stream_with_context
        def generate():
            yield from notification_hub.listen()

        headers = {
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
        }
        return Response(generate(), headers=headers, mimetype="text/event-stream")

    @app.get("/notifications")
    def recent_notifications():
        return jsonify([n.to_dict() for n in notification_store.recent(RECENT_LIMIT)])

    @app.get("/health")
    def health():
        return jsonify({"status": "ok", "timestamp": utc_now_iso()})

    return app


if __name__ == "__main__":
    app = create_app()
    atexit.register(app.extensions["notification_hub"].close_all)
    host = os.getenv("APP_HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "3000"))
    debug = os.getenv("FLASK_DEBUG", "0") == "1"
    app.run(host=host, port=port, debug=debug, threaded=True)
