from flask import Blueprint, current_app, jsonify, request

from errors import DeliveryFailure, IdentityNotFound, InvalidCredentials, ValidationError
from services.login_flow import LoginFlow
from services.otp import VerificationResult
from utils.request_meta import client_ip, user_agent
from utils.validation import normalize_email

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

# One message for every rejected code, so the response is not an oracle
INVALID_CODE_MESSAGE = "Invalid or expired code"


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _flow() -> LoginFlow:
    return LoginFlow.from_app(current_app)


def _challenge_response(challenge, message: str):
    return jsonify(
        message=message,
        email=challenge.subject_email,
        expires_at=challenge.expires_at.isoformat() + "Z",
        expires_in_seconds=challenge.ttl_seconds,
        resend_after_seconds=current_app.config.get("OTP_RESEND_COOLDOWN_SECONDS", 60),
    )


@auth_bp.post("/login")
def login():
    data = _json_body()
    email = normalize_email(data.get("email"))
    password = data.get("password")

    try:
        challenge = _flow().submit_password(email, password, client_ip(), user_agent())
    except ValidationError as exc:
        return jsonify(error=str(exc)), 400
    except InvalidCredentials:
        return jsonify(error="Invalid email or password"), 401
    except DeliveryFailure:
        return jsonify(error="Could not send verification code. Try again shortly."), 502

    return _challenge_response(challenge, "Verification code sent to your email"), 200


@auth_bp.post("/verify-otp")
def verify_otp():
    data = _json_body()
    email = normalize_email(data.get("email"))
    code = data.get("code")
    if isinstance(code, str):
        code = code.strip()

    try:
        result = _flow().submit_code(email, code, client_ip(), user_agent())
    except ValidationError as exc:
        return jsonify(error=str(exc)), 400

    if result is not VerificationResult.ACCEPTED:
        return jsonify(error=INVALID_CODE_MESSAGE), 401

    return jsonify(
        message="Login successful",
        redirect_url=current_app.config.get("POST_AUTH_REDIRECT_URL", "/dashboard"),
    ), 200


@auth_bp.post("/resend-otp")
def resend_otp():
    data = _json_body()
    email = normalize_email(data.get("email"))

    try:
        challenge = _flow().resend(email)
    except ValidationError:
        return jsonify(error="Email is required"), 400
    except IdentityNotFound:
        return jsonify(error="User not found"), 404
    except DeliveryFailure:
        return jsonify(error="Could not send verification code. Try again shortly."), 502

    return _challenge_response(challenge, "New verification code sent to your email"), 200
