# portal/api/auth/test_auth.py
import pytest
from firebase_admin import auth as firebase_auth
from flask_jwt_extended import decode_token


@pytest.fixture
def firebase_tokens(monkeypatch):
    """Maps fake ID token strings to decoded Firebase claims."""
    tokens = {}

    def verify(id_token, *args, **kwargs):
        if id_token not in tokens:
            raise firebase_auth.InvalidIdTokenError("bad token")
        return tokens[id_token]

    monkeypatch.setattr(firebase_auth, 'verify_id_token', verify)
    return tokens


def test_session_creates_a_viewer_profile(app, client, db, firebase_tokens):
    firebase_tokens['good'] = {'uid': 'new-user', 'email': 'new@example.org', 'name': 'Nia Dube'}

    res = client.post('/api/auth/session', json={'id_token': 'good'})

    assert res.status_code == 200
    body = res.get_json()
    assert body['role'] == 'viewer'
    assert 'tasks' not in body['pages']
    profile = db.docs('profiles')['new-user']
    assert (profile['first_name'], profile['last_name'], profile['role']) == ('Nia', 'Dube', 'viewer')

    with app.app_context():
        claims = decode_token(body['access_token'])
    assert claims['sub'] == 'new-user'
    assert claims['role'] == 'viewer'


def test_session_uses_existing_role(client, make_profile, firebase_tokens):
    make_profile('boss', 'admin')
    firebase_tokens['t'] = {'uid': 'boss', 'email': 'boss@example.org'}

    body = client.post('/api/auth/session', json={'id_token': 't'}).get_json()
    assert body['role'] == 'admin'
    assert 'deletion-logs' in body['pages']


def test_invalid_id_token(client, firebase_tokens):
    assert client.post('/api/auth/session', json={'id_token': 'forged'}).status_code == 401
    assert client.post('/api/auth/session', json={}).status_code == 400


def test_refresh_picks_up_role_changes(app, client, db, make_profile, firebase_tokens):
    make_profile('vic', 'viewer')
    firebase_tokens['t'] = {'uid': 'vic'}
    tokens = client.post('/api/auth/session', json={'id_token': 't'}).get_json()

    db.collection('profiles').document('vic').update({'role': 'special'})
    res = client.post('/api/auth/token/refresh', headers={'Authorization': f"Bearer {tokens['refresh_token']}"})

    assert res.get_json()['role'] == 'special'
    with app.app_context():
        assert decode_token(res.get_json()['access_token'])['role'] == 'special'


def test_logout_revokes_tokens(client, db, make_profile, firebase_tokens):
    make_profile('vic')
    firebase_tokens['t'] = {'uid': 'vic'}
    tokens = client.post('/api/auth/session', json={'id_token': 't'}).get_json()
    headers = {'Authorization': f"Bearer {tokens['access_token']}"}
    assert client.get('/api/users/me', headers=headers).status_code == 200

    res = client.post('/api/auth/logout', json={
        'access_token': tokens['access_token'], 'refresh_token': tokens['refresh_token']})

    assert res.status_code == 200
    assert len(db.docs('revoked_tokens')) == 2
    assert client.get('/api/users/me', headers=headers).status_code == 401
