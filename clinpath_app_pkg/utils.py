# clinpath_app_pkg/utils.py
import jwt
import datetime
import uuid # For generating JTI
from functools import wraps
from flask import request, jsonify, current_app, g

# --- JWT Helper Functions ---
# Tokens are minted by the hospital identity service. create_access_token is kept
# for scripts and tests that need to act as that service.
def create_access_token(user_id, user_permissions):
    """Creates a new JWT access token with a JTI claim."""
    jti = str(uuid.uuid4()) # Unique ID for this token
    payload = {
        'exp': datetime.datetime.utcnow() + datetime.timedelta(minutes=current_app.config.get('JWT_EXPIRATION_MINUTES', 30)),
        'iat': datetime.datetime.utcnow(),
        'sub': str(user_id), # User ID (subject)
        'jti': jti, # JWT ID
        'permissions': user_permissions # List of permission strings
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET_KEY'], algorithm=current_app.config.get('JWT_ALGORITHM', 'HS256'))

def decode_access_token(token):
    """
    Decodes a JWT access token.
    Returns the payload if successful, or an error string if decoding fails.
    """
    key_to_use = current_app.config['JWT_SECRET_KEY']
    algo = current_app.config.get('JWT_ALGORITHM', 'HS256')
    try:
        return jwt.decode(token, key_to_use, algorithms=[algo])
    except jwt.ExpiredSignatureError:
        current_app.logger.info("Token decode failed: ExpiredSignatureError")
        return "Token has expired. Please log in again."
    except jwt.InvalidSignatureError:
        current_app.logger.warning("Token decode failed: InvalidSignatureError (Wrong secret key or tampered token)")
        return "Invalid token signature. Please log in again."
    except jwt.DecodeError as e: # More specific error for decoding issues
        current_app.logger.warning(f"Token decode failed: DecodeError - {e}")
        return "Invalid token format. Please log in again."
    except jwt.InvalidTokenError as e:
        current_app.logger.warning(f"Token decode failed: {e}")
        return "Invalid token. Please log in again."

# --- Current User Utility & RBAC Decorator ---
def get_current_user_from_token():
    auth_header = request.headers.get('Authorization')
    token = None
    if auth_header and auth_header.startswith('Bearer '):
        token = auth_header.split(" ")[1]

    if not token:
        g.authentication_error = "Token is missing!"
        return None

    payload = decode_access_token(token)
    if isinstance(payload, str): # Error message returned
        g.authentication_error = payload
        return None

    user_id = payload.get('sub')
    if not user_id:
        g.authentication_error = "Invalid token payload (subject missing)!"
        return None

    g.token_permissions = payload.get('permissions', [])
    return user_id

def permission_required(required_permission):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            current_user_id = get_current_user_from_token() # This sets g.authentication_error on failure

            if not current_user_id:
                error_message = getattr(g, 'authentication_error', "Authentication required.")
                return jsonify({"message": error_message}), 401

            g.current_user_id = current_user_id

            user_permissions = getattr(g, 'token_permissions', []) # Permissions from the token

            if required_permission not in user_permissions:
                return jsonify({"message": f"Permission '{required_permission}' required. You have: {user_permissions}"}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator

# --- Parsing helpers ---
def parse_iso_datetime(dt_str):
    """Helper: Parse ISO string, returns None on failure."""
    if not dt_str or not isinstance(dt_str, str):
        return None
    try:
        parsed = datetime.datetime.fromisoformat(dt_str.replace('Z', '+00:00'))
    except (ValueError, TypeError):
        return None
    # Stored timestamps are naive local hospital time.
    return parsed.replace(tzinfo=None)

def combine_date_time(date_str, time_str=None):
    """
    Build a datetime from the separate date (YYYY-MM-DD) and time (HH:MM) fields
    the ward forms submit. A full ISO timestamp in date_str is accepted as well.
    Raises ValueError on malformed input.
    """
    if not date_str or not isinstance(date_str, str):
        raise ValueError("Date must be a string in ISO format.")
    if 'T' in date_str:
        parsed = parse_iso_datetime(date_str)
        if parsed is None:
            raise ValueError(f"Invalid timestamp '{date_str}'.")
        return parsed
    day = datetime.datetime.strptime(date_str, '%Y-%m-%d')
    if not time_str:
        return day
    if not isinstance(time_str, str):
        raise ValueError("Time must be a string in HH:MM format.")
    fmt = '%H:%M:%S' if time_str.count(':') == 2 else '%H:%M'
    clock = datetime.datetime.strptime(time_str, fmt).time()
    return datetime.datetime.combine(day.date(), clock)

def parse_month_window_args(args):
    """
    Read ?month=&year= from a request. Missing values default to the current month.
    Raises ValueError for non-numeric or out-of-range values.
    """
    from .rollup.services import MonthWindow

    today = datetime.date.today()
    try:
        month = args.get('month')
        year = args.get('year')
        month = today.month if month is None or month == '' else int(month)
        year = today.year if year is None or year == '' else int(year)
    except (TypeError, ValueError):
        raise ValueError("month and year must be integers.")
    return MonthWindow(month=month, year=year)
