from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from flask import Flask, jsonify, request

from ..common.validators import optional_positive_int
from ..common.web import current_handle, json_body, login_required, ok, roles_required
from ..container import Container
from ..core.constants import DEFAULT_ATTENDANCE_LIST_LIMIT, DEFAULT_HISTORY_LIMIT
from ..core.enums import RecordOutcome, Role
from ..core.exceptions import ValidationError
from ..verification.geofence import Coordinate
from ..windows.codes import decode_qr_image
from .service import CheckInResult


def _location(data: Mapping[str, Any]) -> Optional[Coordinate]:
    nested = data.get("location")
    if nested:
        return Coordinate.from_payload(nested)
    return Coordinate.from_payload(
        {k: data[k] for k in ("latitude", "longitude", "lat", "lng") if data.get(k) not in (None, "")}
    )


def _window_id(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("Session id must be an integer")


def _form_payload() -> dict:
    """Multipart uploads carry the verification payload as form fields."""

    data = dict(request.form)
    raw_vector = data.get("feature_vector")
    if raw_vector:
        try:
            data["feature_vector"] = json.loads(raw_vector)
        except ValueError:
            raise ValidationError("Feature vector must be a JSON array")
    raw_location = data.get("location")
    if raw_location:
        try:
            data["location"] = json.loads(raw_location)
        except ValueError:
            raise ValidationError("Location must be a JSON object")
    return data


def _respond(result: CheckInResult):
    if not result.accepted:
        return jsonify({"success": False, "data": result.to_dict(), "message": result.message}), 200
    status = 201 if result.outcome == RecordOutcome.CREATED else 200
    return ok(result.to_dict(), status, message=result.message)


def register(app: Flask, container: Container) -> None:
    service = container.checkin_service

    def check_in(data: Mapping[str, Any], *, window_id=None, code=None) -> CheckInResult:
        return service.check_in(
            current_handle(),
            window_id=window_id,
            code=code,
            location=_location(data),
            feature_vector=data.get("feature_vector"),
        )

    @app.route("/attendance", methods=["POST"], endpoint="check_in")
    @login_required
    def check_in_by_window():
        data = json_body()
        if data.get("window_id") in (None, ""):
            raise ValidationError("Session id is required")
        return _respond(check_in(data, window_id=_window_id(data["window_id"])))

    @app.route("/attendance/code", methods=["POST"], endpoint="check_in_by_code")
    @login_required
    def check_in_by_code():
        data = json_body()
        return _respond(check_in(data, code=str(data.get("code", ""))))

    @app.route("/attendance/code/image", methods=["POST"], endpoint="check_in_by_qr_image")
    @login_required
    def check_in_by_qr_image():
        upload = request.files.get("image")
        if upload is None or not upload.filename:
            raise ValidationError("QR image is required")
        code = decode_qr_image(upload.stream)
        if not code:
            raise ValidationError("No QR code found in the image")
        return _respond(check_in(_form_payload(), code=code))

    @app.route("/attendance/me", methods=["GET"], endpoint="my_attendance")
    @login_required
    def my_attendance():
        limit = optional_positive_int(request.args.get("limit"), "Limit") or DEFAULT_HISTORY_LIMIT
        records = service.history(current_handle(), limit=limit)
        return ok([r.to_dict() for r in records])

    @app.route("/attendance/active-window", methods=["GET"], endpoint="my_active_window")
    @login_required
    def my_active_window():
        return ok(service.active_window_status(current_handle()))

    @app.route("/attendance", methods=["GET"], endpoint="all_attendance")
    @roles_required([Role.ADMIN])
    def all_attendance():
        limit = optional_positive_int(request.args.get("limit"), "Limit") or DEFAULT_ATTENDANCE_LIST_LIMIT
        records = service.recent(limit=limit)
        return ok([r.to_dict() for r in records])
