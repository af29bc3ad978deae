import hashlib
import hmac
from datetime import datetime, timedelta
from jose import jwt, JWTError
from config.config import Config

# JWT settings
SECRET_KEY = Config.SECRET_KEY
ALGORITHM = "HS256"


def generate_token(data: dict, expires_delta: timedelta = None) -> str:
    """Generate JWT token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=Config.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def verify_token(token: str) -> dict:
    """Verify and decode JWT token"""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return payload
    except JWTError:
        return None


def build_meeting_link(review_session_id: int) -> str:
    """
    Derive the online meeting URL from a review session's id.

    The room name is the session id plus a keyed digest, so it doubles as a
    stable room key without being guessable from the id alone.
    """
    digest = hmac.new(
        SECRET_KEY.encode(),
        f"review-session:{review_session_id}".encode(),
        hashlib.sha256
    ).hexdigest()[:12]
    room = f"{Config.MEETING_ROOM_PREFIX}-{review_session_id}-{digest}"
    return f"{Config.MEETING_BASE_URL.rstrip('/')}/{room}"
