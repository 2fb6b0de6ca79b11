from __future__ import annotations

import io

from flask import Flask, request, send_file

from ..common.web import current_handle, current_role, json_body, login_required, ok, roles_required
from ..container import Container
from ..core.constants import DEFAULT_WINDOW_LIST_LIMIT
from ..core.enums import PRIVILEGED_ROLES, Role
from ..core.exceptions import AuthorizationError
from ..common.validators import optional_positive_int
from .codes import render_qr_png
from .model import Window, WindowConfig


def register(app: Flask, container: Container) -> None:
    manager = container.window_manager

    def owned_window(window_id: int) -> Window:
        window = manager.get(window_id)
        if current_role() != Role.ADMIN and window.owner_handle != current_handle():
            raise AuthorizationError("This session belongs to another instructor")
        return window

    def owner_scope():
        # Admins see every window; instructors only their own.
        return None if current_role() == Role.ADMIN else current_handle()

    @app.route("/windows", methods=["POST"], endpoint="open_window")
    @roles_required(PRIVILEGED_ROLES)
    def open_window():
        config = WindowConfig.from_payload(json_body())
        window = manager.open(current_handle(), config)
        return ok(window.to_dict(), 201)

    @app.route("/windows", methods=["GET"], endpoint="list_windows")
    @roles_required(PRIVILEGED_ROLES)
    def list_windows():
        limit = optional_positive_int(request.args.get("limit"), "Limit") or DEFAULT_WINDOW_LIST_LIMIT
        windows = manager.list_recent(limit=limit, owner_handle=owner_scope())
        return ok([w.to_dict() for w in windows])

    @app.route("/windows/active", methods=["GET"], endpoint="active_window")
    @login_required
    def active_window():
        owner = current_handle() if current_role() == Role.TEACHER else None
        window = manager.get_active(owner)
        return ok(window.to_dict() if window else None)

    @app.route("/windows/<int:window_id>/expire", methods=["POST"], endpoint="expire_window")
    @roles_required(PRIVILEGED_ROLES)
    def expire_window(window_id: int):
        owned_window(window_id)
        window = manager.close(window_id)
        return ok(window.to_dict())

    @app.route("/windows/<int:window_id>/qr", methods=["GET"], endpoint="window_qr")
    @roles_required(PRIVILEGED_ROLES)
    def window_qr(window_id: int):
        window = owned_window(window_id)
        png = render_qr_png(window.code)
        return send_file(io.BytesIO(png), mimetype="image/png", download_name=f"window-{window_id}.png")

    @app.route("/windows/<int:window_id>/attendance", methods=["GET"], endpoint="window_attendance")
    @roles_required(PRIVILEGED_ROLES)
    def window_attendance(window_id: int):
        owned_window(window_id)
        report = container.checkin_service.window_report(window_id)
        return ok(report.to_dict())
