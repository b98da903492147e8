from __future__ import annotations

from flask import Flask, jsonify, request

from ..core.exceptions import ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    def caller():
        return container.identity.from_headers(request.headers)

    @app.route("/api/groups/<group_id>/settings", methods=["GET"], endpoint="group_settings")
    def group_settings(group_id: str):
        return jsonify(container.group_service.get_settings(group_id, caller=caller()).to_dict())

    @app.route("/api/groups/<group_id>/settings", methods=["PUT"], endpoint="update_group_settings")
    def update_group_settings(group_id: str):
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("request body must be a JSON object")

        settings = container.group_service.update_settings(
            group_id,
            caller=caller(),
            allow_self_attendance=data.get("allow_self_attendance"),
            attendance_window_minutes=data.get("attendance_window_minutes"),
            penalty_threshold=data.get("penalty_threshold"),
        )
        return jsonify(settings.to_dict())
