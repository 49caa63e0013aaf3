import hmac
import logging
from dataclasses import asdict, dataclass
from urllib.parse import urlparse

from flask import Blueprint, current_app, jsonify, redirect, render_template_string, request, session, url_for

logger = logging.getLogger('personal_log.auth')

SESSION_KEY = 'user'
PUBLIC_PREFIXES = ('/api/', '/static/')
PUBLIC_PATHS = ('/login', '/favicon.ico')

LOGIN_TEMPLATE = """<!doctype html>
<html>
<head><meta charset="utf-8"><title>Personal Log - Sign in</title></head>
<body>
  <h1>Personal Log</h1>
  {% if error %}<p class="error">Sign in failed. Check your details and try again.</p>{% endif %}
  <form method="post" action="{{ url_for('auth.login') }}">
    <input type="hidden" name="next" value="{{ next_url }}">
    <label>Username <input type="text" name="username" autofocus></label>
    <label>Password <input type="password" name="password"></label>
    <button type="submit">Sign in</button>
  </form>
</body>
</html>
"""


@dataclass(frozen=True)
class User:
    id: str
    name: str
    username: str


class CredentialProvider:
    """Decides whether a username/password pair identifies a user"""

    def authenticate(self, username, password):
        raise NotImplementedError


class StaticCredentialProvider(CredentialProvider):
    """The single configured identity.

    Passwords are compared in plain text. When either configured value is
    missing nobody is authenticated.
    """

    def __init__(self, username, password, name='Pascal'):
        self.user = User(id='1', name=name, username=username) if username else None
        self.password = password

    def authenticate(self, username, password):
        if self.user is None or not self.password:
            return None
        if not isinstance(username, str) or not isinstance(password, str):
            return None
        user_ok = hmac.compare_digest(username.encode('utf-8'), self.user.username.encode('utf-8'))
        pass_ok = hmac.compare_digest(password.encode('utf-8'), self.password.encode('utf-8'))
        if user_ok and pass_ok:
            return self.user
        return None


def is_public_path(path):
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


def current_user():
    data = session.get(SESSION_KEY)
    return User(**data) if data else None


def _safe_next(target):
    """Only allow redirects to local paths"""
    if not target:
        return None
    parsed = urlparse(target)
    if parsed.scheme or parsed.netloc or not target.startswith('/'):
        return None
    return target


def require_login():
    """before_request hook: send anonymous visitors of protected pages to /login"""
    if is_public_path(request.path):
        return None
    if current_user() is not None:
        return None
    return redirect(url_for('auth.login_page', next=request.full_path.rstrip('?')))


def install_guard(app):
    app.before_request(require_login)


auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['GET'])
def login_page():
    """Render the sign-in form"""
    return render_template_string(
        LOGIN_TEMPLATE,
        error=request.args.get('error'),
        next_url=_safe_next(request.args.get('next')) or '/',
    )


@auth_bp.route('/api/auth/login', methods=['POST'])
def login():
    """Check the submitted credentials and open a session"""
    wants_json = request.is_json
    if wants_json:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
    else:
        data = request.form
    provider = current_app.extensions['personal_log.auth_provider']
    user = provider.authenticate(data.get('username'), data.get('password'))

    if user is None:
        logger.warning(f"Failed sign-in from {request.remote_addr}")
        if wants_json:
            return jsonify({"error": "Invalid credentials"}), 401
        return redirect(url_for('auth.login_page', error='CredentialsSignin'))

    session.clear()
    session[SESSION_KEY] = asdict(user)
    session.permanent = True
    logger.info(f"User {user.username} signed in")
    if wants_json:
        return jsonify({"success": True, "user": asdict(user)})
    return redirect(_safe_next(data.get('next')) or '/')


@auth_bp.route('/api/auth/logout', methods=['POST'])
def logout():
    """Close the session"""
    session.clear()
    return jsonify({"success": True})


@auth_bp.route('/api/auth/session', methods=['GET'])
def get_session():
    """Current user, or an empty object when signed out"""
    user = current_user()
    if user is None:
        return jsonify({})
    return jsonify({"user": asdict(user)})
