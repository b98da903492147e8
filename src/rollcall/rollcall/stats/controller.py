from __future__ import annotations

from flask import Flask, jsonify, request

from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..container import Container


def register(app: Flask, container: Container) -> None:
    def caller():
        return container.identity.from_headers(request.headers)

    def require_session_viewer(session_id: str):
        session = container.session_manager.get(session_id)
        container.group_service.require_viewer(session.group_id, caller=caller())
        return session

    @app.route("/api/sessions/<session_id>/summary", methods=["GET"], endpoint="session_summary")
    def session_summary(session_id: str):
        require_session_viewer(session_id)
        return jsonify(container.stats.per_session_summary(session_id).to_dict())

    @app.route("/api/sessions/<session_id>/roster", methods=["GET"], endpoint="session_roster")
    def session_roster(session_id: str):
        require_session_viewer(session_id)
        return jsonify([entry.to_dict() for entry in container.stats.session_roster(session_id)])

    @app.route("/api/groups/<group_id>/history", methods=["GET"], endpoint="group_history")
    def group_history(group_id: str):
        container.group_service.require_viewer(group_id, caller=caller())
        limit = request.args.get("limit", DEFAULT_HISTORY_LIMIT)
        return jsonify([s.to_dict() for s in container.session_manager.history(group_id, limit=limit)])

    @app.route("/api/groups/<group_id>/rollup", methods=["GET"], endpoint="group_rollup")
    def group_rollup(group_id: str):
        container.group_service.require_viewer(group_id, caller=caller())
        return jsonify(container.stats.group_rollup(group_id).to_dict())

    @app.route("/api/groups/<group_id>/students/<student_id>/summary", methods=["GET"], endpoint="student_summary")
    def student_summary(group_id: str, student_id: str):
        container.group_service.require_viewer(group_id, caller=caller())
        return jsonify(container.stats.per_student_summary(group_id, student_id).to_dict())
