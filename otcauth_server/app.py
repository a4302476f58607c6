"""Flask application exposing the one-time-code endpoints."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Type

from flask import Flask, jsonify, request
from flask_cors import CORS
from pydantic import BaseModel, ValidationError

from otcauth.config import ProvisioningSettings
from otcauth.results import Err, ErrorKind, Result
from otcauth.service import ProvisioningService

from .schemas import (
    CompleteSignupRequest,
    IssueCodeRequest,
    OTCResponse,
    ResetPasswordRequest,
)

LOGGER = logging.getLogger(__name__)

STATUS_CODES = {
    ErrorKind.MISSING_FIELDS: 400,
    ErrorKind.INVALID_EMAIL: 400,
    ErrorKind.INVALID_FIELDS: 400,
    ErrorKind.WEAK_CREDENTIAL: 400,
    ErrorKind.INVALID_OR_EXPIRED_CODE: 400,
    ErrorKind.ALREADY_REGISTERED: 400,
    ErrorKind.ACCOUNT_NOT_FOUND: 404,
    ErrorKind.STORAGE_UNAVAILABLE: 500,
    ErrorKind.DELIVERY_UNAVAILABLE: 500,
}


def _error_response(err: Err):
    body = OTCResponse(success=False, error=err.kind.value, message=err.message)
    return jsonify(body.model_dump(exclude_none=True)), STATUS_CODES[err.kind]


def _parse(schema: Type[BaseModel]) -> BaseModel | Err:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return Err(ErrorKind.MISSING_FIELDS, "Request body must be a JSON object")
    try:
        return schema.model_validate(payload)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in e["loc"]) for e in exc.errors())
        return Err(ErrorKind.MISSING_FIELDS, f"Invalid fields: {fields}")


def _respond(result: Result, render: Callable[[object], OTCResponse]):
    if not result.ok:
        return _error_response(result)
    return jsonify(render(result.value).model_dump(exclude_none=True))


def create_app(
    settings: ProvisioningSettings | None = None,
    service: Optional[ProvisioningService] = None,
) -> Flask:
    settings = settings or ProvisioningSettings()
    service = service or ProvisioningService.from_settings(settings)

    app = Flask(__name__)
    CORS(app, origins=settings.cors_origins)
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    app.extensions["otcauth"] = service

    @app.route("/send-signup-otp", methods=["POST", "OPTIONS"])
    def send_signup_otp():
        if request.method == "OPTIONS":
            return "", 204
        payload = _parse(IssueCodeRequest)
        if isinstance(payload, Err):
            return _error_response(payload)
        result = service.request_signup_code(payload.email)
        return _respond(result, lambda message: OTCResponse(message=message))

    @app.route("/send-password-otp", methods=["POST", "OPTIONS"])
    def send_password_otp():
        if request.method == "OPTIONS":
            return "", 204
        payload = _parse(IssueCodeRequest)
        if isinstance(payload, Err):
            return _error_response(payload)
        result = service.request_password_reset(payload.email)
        return _respond(result, lambda message: OTCResponse(message=message))

    @app.route("/verify-signup-otp", methods=["POST", "OPTIONS"])
    def verify_signup_otp():
        if request.method == "OPTIONS":
            return "", 204
        payload = _parse(CompleteSignupRequest)
        if isinstance(payload, Err):
            return _error_response(payload)
        result = service.complete_signup(
            payload.email,
            payload.code,
            payload.password,
            payload.username,
            payload.full_name,
        )
        return _respond(result, lambda user_id: OTCResponse(user_id=user_id))

    @app.route("/reset-password-with-otp", methods=["POST", "OPTIONS"])
    def reset_password_with_otp():
        if request.method == "OPTIONS":
            return "", 204
        payload = _parse(ResetPasswordRequest)
        if isinstance(payload, Err):
            return _error_response(payload)
        result = service.reset_password(payload.email, payload.code, payload.new_password)
        return _respond(result, lambda _: OTCResponse(message="Password reset successfully"))

    @app.errorhandler(400)
    def handle_bad_request(error):
        message = getattr(error, "description", "Bad Request")
        body = OTCResponse(success=False, error=ErrorKind.MISSING_FIELDS.value, message=message)
        return jsonify(body.model_dump(exclude_none=True)), 400

    @app.errorhandler(500)
    def handle_server_error(error):
        LOGGER.error(
            "Unhandled error serving %s",
            request.path,
            exc_info=getattr(error, "original_exception", None),
        )
        return _error_response(Err(ErrorKind.STORAGE_UNAVAILABLE))

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app
