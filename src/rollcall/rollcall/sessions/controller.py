from __future__ import annotations

import json

from flask import Flask, Response, jsonify, request, stream_with_context

from ..core.exceptions import ValidationError
from ..container import Container
from ..notifications.events import Heartbeat
from ..records.model import RecordEntry
from ..records.service import parse_submitted_status


def register(app: Flask, container: Container) -> None:
    def caller():
        return container.identity.from_headers(request.headers)

    def body() -> dict:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("request body must be a JSON object")
        return data

    @app.route("/api/groups/<group_id>/sessions", methods=["POST"], endpoint="open_session")
    def open_session(group_id: str):
        session = container.session_manager.open(group_id, body().get("type"), caller=caller())
        return jsonify(session.to_dict()), 201

    @app.route("/api/groups/<group_id>/sessions/active", methods=["GET"], endpoint="active_session")
    def active_session(group_id: str):
        container.group_service.require_viewer(group_id, caller=caller())
        session = container.session_manager.active_for_group(group_id)
        return jsonify(session.to_dict() if session else None)

    @app.route("/api/sessions/<session_id>/close", methods=["POST"], endpoint="close_session")
    def close_session(session_id: str):
        summary = container.session_manager.close(session_id, caller=caller())
        return jsonify(summary.to_dict())

    @app.route("/api/sessions/<session_id>/records", methods=["POST"], endpoint="submit_record")
    def submit_record(session_id: str):
        who = caller()
        data = body()
        record = container.record_ledger.submit(
            session_id,
            data.get("student_id") or who.profile_id,
            data.get("status"),
            data.get("marked_by") or who.profile_id,
            caller=who,
        )
        return jsonify(record.to_dict()), 201

    @app.route("/api/sessions/<session_id>/records/bulk", methods=["POST"], endpoint="bulk_submit_records")
    def bulk_submit_records(session_id: str):
        who = caller()
        data = body()
        raw_entries = data.get("entries")
        if not isinstance(raw_entries, list):
            raise ValidationError("entries must be a list")

        entries = []
        for item in raw_entries:
            if not isinstance(item, dict) or not item.get("student_id"):
                raise ValidationError("each entry needs a student_id and a status")
            entries.append(RecordEntry(student_id=str(item["student_id"]), status=parse_submitted_status(item.get("status"))))

        records = container.record_ledger.bulk_submit(
            session_id,
            entries,
            data.get("marked_by") or who.profile_id,
            caller=who,
        )
        return jsonify([r.to_dict() for r in records]), 201

    @app.route("/api/sessions/<session_id>/events", methods=["GET"], endpoint="session_events")
    def session_events(session_id: str):
        session = container.session_manager.get(session_id)
        container.group_service.require_viewer(session.group_id, caller=caller())
        after = request.args.get("after", type=int) or 0

        def stream():
            # Released when the client disconnects (GeneratorExit) or the session closes.
            # Idle polls write a comment line so a gone client is noticed while quiet.
            with container.notifier.subscribe(session_id, after=after) as sub:
                for event in sub.with_heartbeats():
                    if isinstance(event, Heartbeat):
                        yield ": keepalive\n\n"
                        continue
                    yield f"id: {event.cursor}\nevent: {event.kind}\ndata: {json.dumps(event.to_dict())}\n\n"

        headers = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
        return Response(stream_with_context(stream()), mimetype="text/event-stream", headers=headers)
