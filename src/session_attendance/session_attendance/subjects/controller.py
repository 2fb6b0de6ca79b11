from __future__ import annotations

from flask import Flask, session

from ..common.web import current_handle, json_body, login_required, ok, roles_required
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import NotFoundError


def register(app: Flask, container: Container) -> None:
    @app.route("/login", methods=["POST"], endpoint="login")
    def login():
        data = json_body()
        s_subject = container.auth_service.authenticate(
            str(data.get("username", data.get("handle", ""))),
            str(data.get("password", "")),
        )
        session.clear()
        session["handle"] = s_subject.handle
        session["name"] = s_subject.full_name
        session["role"] = s_subject.role.value
        return ok({"handle": s_subject.handle, "name": s_subject.full_name, "role": s_subject.role.value})

    @app.route("/logout", methods=["POST"], endpoint="logout")
    def logout():
        session.clear()
        return ok()

    @app.route("/me", methods=["GET"], endpoint="me")
    @login_required
    def me():
        subject = container.subjects_repo.get_by_handle(current_handle())
        if subject is None:
            session.clear()
            raise NotFoundError("Account no longer exists")
        profile = subject.profile
        return ok(
            {
                "handle": subject.handle,
                "name": subject.full_name,
                "role": subject.role.value,
                "face_enrolled": subject.is_enrolled,
                "email": profile.email,
                "enroll_no": profile.enroll_no,
                "registered_no": profile.registered_no,
                "department": profile.department,
                "program": profile.program,
                "section": profile.section,
                "year": profile.year,
            }
        )

    @app.route("/subjects/<handle>/face", methods=["POST"], endpoint="enroll_face")
    @roles_required([Role.ADMIN])
    def enroll_face(handle: str):
        data = json_body()
        container.enrollment_service.enroll(handle, data.get("feature_vector"))
        return ok({"handle": handle, "face_enrolled": True})
