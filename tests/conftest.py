"""
Shared pytest fixtures for Tilly tests.

Supabase is replaced by an in-memory fake wired into `responses`, so the app,
the auth adapter and the database layer all run their real HTTP code paths.
"""
import json
import os
import sys
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

import pytest
import responses
import yaml

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

SUPABASE_URL = 'https://test-project.supabase.co'
PUBLISHABLE_KEY = 'sb_publishable_test'
SECRET_KEY = 'sb_secret_test'

# Set test environment BEFORE any app imports
os.environ['TESTING'] = '1'
os.environ['SUPABASE_URL'] = SUPABASE_URL
os.environ['SUPABASE_PUBLISHABLE_KEY'] = PUBLISHABLE_KEY
os.environ['SUPABASE_SECRET_KEY'] = SECRET_KEY
os.environ['FLASK_SECRET_KEY'] = 'test-secret-key-for-testing-only'

from authlib.oauth2.rfc7636 import create_s256_code_challenge  # noqa: E402

import tilly  # noqa: E402
from tilly.app import create_app  # noqa: E402
from tilly.config import Config  # noqa: E402
from tilly.services.identity import session_from_token_response  # noqa: E402
from tilly.services.sessions import SESSION_KEY  # noqa: E402


def _reply(status, payload=None):
    body = '' if payload is None else json.dumps(payload)
    return status, {'Content-Type': 'application/json'}, body


def _query(request):
    return {key: values[0] for key, values in parse_qs(urlsplit(request.url).query).items()}


def _body(request):
    return json.loads(request.body) if request.body else {}


def _bearer(request):
    return request.headers.get('Authorization', '').partition(' ')[2]


def _matches(row, query):
    for column, condition in query.items():
        if column in ('select', 'order', 'limit'):
            continue
        op, _, value = condition.partition('.')
        if op != 'eq' or str(row.get(column)) != value:
            return False
    return True


def _project(row, columns):
    if columns in (None, '*'):
        return dict(row)
    return {column: row.get(column) for column in columns.split(',')}


# ==============================================================================
# Fake Supabase
# ==============================================================================

class FakeSupabase:
    """
    In-memory Supabase project: Auth (GoTrue) and the two PostgREST tables.

    Row-level security is modelled on the tasks table: a user token only
    sees and writes its own rows, the secret key sees everything. The
    allowed_users table is only readable with the secret key.
    """

    def __init__(self, rsps):
        self.tasks = {}
        self.allowed_users = []
        self.access_tokens = {}
        self.refresh_tokens = {}
        self.auth_codes = {}
        self.providers = {'google': True}
        self.fail_database = False
        self.fail_tasks = False
        self.auth_down = False
        self.refresh_calls = 0
        self.signed_out = []
        self.requests = []
        self._tick = 0

        base = SUPABASE_URL
        rsps.add_callback(responses.GET, f'{base}/auth/v1/settings', callback=self._settings)
        rsps.add_callback(responses.POST, f'{base}/auth/v1/token', callback=self._token)
        rsps.add_callback(responses.GET, f'{base}/auth/v1/user', callback=self._user)
        rsps.add_callback(responses.POST, f'{base}/auth/v1/logout', callback=self._logout)
        for method in (responses.GET, responses.POST, responses.PATCH, responses.DELETE):
            rsps.add_callback(method, f'{base}/rest/v1/tasks', callback=self._tasks)
        rsps.add_callback(responses.GET, f'{base}/rest/v1/allowed_users', callback=self._allowed)

    # ─────────────────────────────────────────────────────────────
    # Test helpers
    # ─────────────────────────────────────────────────────────────

    def create_user(self, email):
        return {'id': str(uuid.uuid4()), 'email': email}

    def issue_session(self, user, expires_in=3600):
        """Mint tokens for a user, the way a successful sign-in does"""
        access_token = f'access-{uuid.uuid4().hex}'
        refresh_token = f'refresh-{uuid.uuid4().hex}'
        self.access_tokens[access_token] = user
        self.refresh_tokens[refresh_token] = user
        return {
            'access_token': access_token,
            'refresh_token': refresh_token,
            'token_type': 'bearer',
            'expires_in': expires_in,
            'expires_at': int(datetime.now(timezone.utc).timestamp()) + expires_in,
            'user': user,
        }

    def issue_code(self, user, code_challenge):
        code = uuid.uuid4().hex
        self.auth_codes[code] = (user, code_challenge)
        return code

    def allow(self, entry_type, pattern):
        self.allowed_users.append({'id': str(uuid.uuid4()), 'type': entry_type, 'pattern': pattern})

    def add_task(self, owner, title='Existing task', **fields):
        """Insert a row directly, bypassing the API"""
        row = self._new_row({'title': title, 'user_id': owner['id'], **fields})
        self.tasks[row['id']] = row
        return row

    def _timestamp(self):
        self._tick += 1
        moment = datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=self._tick)
        return moment.isoformat()

    def _new_row(self, values):
        now = self._timestamp()
        row = {
            'id': str(uuid.uuid4()),
            'description': '',
            'status': 'todo',
            'priority': 'medium',
            'created_at': now,
            'updated_at': now,
        }
        row.update(values)
        return row

    # ─────────────────────────────────────────────────────────────
    # Auth endpoints
    # ─────────────────────────────────────────────────────────────

    def _settings(self, request):
        if self.auth_down:
            return _reply(503, {'msg': 'unavailable'})
        return _reply(200, {'external': dict(self.providers)})

    def _token(self, request):
        if self.auth_down:
            return _reply(503, {'msg': 'unavailable'})
        grant_type = _query(request).get('grant_type')
        body = _body(request)

        if grant_type == 'pkce':
            entry = self.auth_codes.pop(body.get('auth_code'), None)
            if entry is None or create_s256_code_challenge(body.get('code_verifier', '')) != entry[1]:
                return _reply(400, {'error': 'invalid_grant'})
            return _reply(200, self.issue_session(entry[0]))

        if grant_type == 'refresh_token':
            self.refresh_calls += 1
            user = self.refresh_tokens.pop(body.get('refresh_token'), None)
            if user is None:
                return _reply(400, {'error': 'invalid_grant'})
            return _reply(200, self.issue_session(user))

        return _reply(400, {'error': 'unsupported_grant_type'})

    def _user(self, request):
        if self.auth_down:
            return _reply(503, {'msg': 'unavailable'})
        user = self.access_tokens.get(_bearer(request))
        if user is None:
            return _reply(401, {'msg': 'invalid JWT'})
        return _reply(200, user)

    def _logout(self, request):
        token = _bearer(request)
        user = self.access_tokens.pop(token, None)
        if user is None:
            return _reply(401, {'msg': 'invalid JWT'})
        self.signed_out.append(user['email'])
        return _reply(204)

    # ─────────────────────────────────────────────────────────────
    # PostgREST tables
    # ─────────────────────────────────────────────────────────────

    def _caller(self, request):
        """('admin', None), ('user', user) or (None, None) for a bad token"""
        token = _bearer(request)
        if token == SECRET_KEY:
            return 'admin', None
        if token == PUBLISHABLE_KEY:
            return 'anon', None
        user = self.access_tokens.get(token)
        return ('user', user) if user else (None, None)

    def _tasks(self, request):
        self.requests.append((request.method, request.url))
        if self.fail_database or self.fail_tasks:
            return _reply(500, {'message': 'database unavailable'})

        role, user = self._caller(request)
        if role is None:
            return _reply(401, {'message': 'JWT expired'})

        def visible(row):
            if role == 'admin':
                return True
            return role == 'user' and row['user_id'] == user['id']

        query = _query(request)
        if query.get('id', '').startswith('eq.urn:'):
            # Postgres uuid input rejects the urn form
            return _reply(400, {'code': '22P02', 'message': 'invalid input syntax for type uuid'})
        rows = [row for row in self.tasks.values() if visible(row) and _matches(row, query)]

        if request.method == 'GET':
            if query.get('order') == 'created_at.desc':
                rows.sort(key=lambda row: row['created_at'], reverse=True)
            if 'limit' in query:
                rows = rows[:int(query['limit'])]
            return _reply(200, [_project(row, query.get('select')) for row in rows])

        if request.method == 'POST':
            values = _body(request)
            if role != 'admin' and (role != 'user' or values.get('user_id') != user['id']):
                return _reply(403, {'message': 'new row violates row-level security policy'})
            row = self._new_row(values)
            self.tasks[row['id']] = row
            return _reply(201, [dict(row)])

        if request.method == 'PATCH':
            values = _body(request)
            for row in rows:
                row.update(values)
            return _reply(200, [dict(row) for row in rows])

        for row in rows:
            del self.tasks[row['id']]
        return _reply(200, [dict(row) for row in rows])

    def _allowed(self, request):
        if self.fail_database:
            return _reply(500, {'message': 'database unavailable'})
        if _bearer(request) != SECRET_KEY:
            return _reply(200, [])

        query = _query(request)
        rows = [row for row in self.allowed_users if _matches(row, query)]
        if 'limit' in query:
            rows = rows[:int(query['limit'])]
        return _reply(200, [_project(row, query.get('select')) for row in rows])


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def mock_responses():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def supabase(mock_responses):
    """Fresh in-memory Supabase project per test"""
    return FakeSupabase(mock_responses)


def build_config(tmp_path, transport='cookie', **session_overrides):
    """Load the packaged config.yaml with test overrides"""
    with open(Path(tilly.__file__).parent / 'config.yaml', 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    data['auth']['transport'] = transport
    data['session']['cookie_secure'] = False
    data['session'].update(session_overrides)

    config_path = tmp_path / f'config-{transport}.yaml'
    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(data, f, allow_unicode=True)
    return Config(str(config_path))


@pytest.fixture
def app(supabase, tmp_path):
    """Tilly app using the cookie session transport"""
    app = create_app(build_config(tmp_path, transport='cookie'))
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def bearer_app(supabase, tmp_path):
    """Tilly app using the bearer token transport"""
    app = create_app(build_config(tmp_path, transport='bearer'))
    app.config['TESTING'] = True
    return app


@pytest.fixture
def bearer_client(bearer_app):
    return bearer_app.test_client()


@pytest.fixture
def sign_in(supabase):
    """
    Put a provider session for `email` into a test client's cookie.

    Returns the fake user record.
    """
    def _sign_in(client, email, expires_in=3600, allowed=True):
        user = supabase.create_user(email)
        if allowed:
            supabase.allow('email', email)
        tokens = supabase.issue_session(user, expires_in=expires_in)
        with client.session_transaction() as sess:
            sess[SESSION_KEY] = session_from_token_response(tokens)
        return user
    return _sign_in


@pytest.fixture
def bearer_token(supabase):
    """Mint an access token for `email`; returns (user, Authorization headers)"""
    def _token(email, allowed=True):
        user = supabase.create_user(email)
        if allowed:
            supabase.allow('email', email)
        tokens = supabase.issue_session(user)
        return user, {'Authorization': f"Bearer {tokens['access_token']}"}
    return _token
