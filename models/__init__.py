from .db import db
from .user import User
from .otp_challenge import OtpChallenge
from .login_attempt import LoginAttempt
from .otp_attempt import OtpAttempt
