from driving_school.models.refresh_session import RefreshSession
from driving_school.models.user import Instructor, Student, User


def _register(client, email='s@x.com', password='password1', role='student', full_name='Sam Student'):
    return client.post(
        '/auth/register',
        json={'email': email, 'password': password, 'role': role, 'fullName': full_name},
    )


def _login(client, email='s@x.com', password='password1'):
    return client.post('/auth/login', json={'email': email, 'password': password})


def _refresh_with(client, token: str):
    return client.post('/auth/refresh', headers={'Cookie': f'refresh_token={token}'})


def test_register_returns_201_with_public_user(client) -> None:
    response = _register(client)

    assert response.status_code == 201
    body = response.json()
    assert body['ok'] is True
    assert body['user']['email'] == 's@x.com'
    assert body['user']['role'] == 'student'
    assert set(body['user']) == {'id', 'email', 'role'}


def test_register_duplicate_email_returns_409(client, database) -> None:
    _register(client)

    response = _register(client, email='S@x.com', role='instructor', full_name='Other Person')

    assert response.status_code == 409
    assert response.json()['error']['code'] == 'duplicate_email'
    with database.session() as db:
        assert db.query(User).count() == 1
        assert db.query(Instructor).count() == 0
        assert db.query(Student).count() == 1


def test_register_short_password_returns_400(client) -> None:
    response = _register(client, password='short')

    assert response.status_code == 400
    assert response.json()['error']['code'] == 'weak_password'


def test_register_password_past_bcrypt_limit_returns_400(client) -> None:
    response = _register(client, password='p' * 72 + 'AAAA')

    assert response.status_code == 400
    assert response.json()['error']['code'] == 'password_too_long'
    assert _login(client, password='p' * 72 + 'ZZZZ').status_code == 401


def test_register_invalid_payload_returns_400(client) -> None:
    response = client.post('/auth/register', json={'email': 'not-an-email', 'password': 'password1', 'role': 'pilot'})

    assert response.status_code == 400
    error = response.json()['error']
    assert error['code'] == 'validation_error'
    assert error['fields']


def test_login_returns_access_token_and_scoped_http_only_cookie(client) -> None:
    _register(client)

    response = _login(client)

    assert response.status_code == 200
    body = response.json()
    assert body['accessToken']
    assert body['user']['email'] == 's@x.com'
    set_cookie = response.headers['set-cookie']
    assert 'refresh_token=' in set_cookie
    assert 'HttpOnly' in set_cookie
    assert 'Path=/auth' in set_cookie
    assert body['accessToken'] not in set_cookie


def test_login_failures_are_indistinguishable(client) -> None:
    _register(client)

    wrong_password = _login(client, password='password2')
    unknown_email = _login(client, email='ghost@x.com')

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()


def test_refresh_issues_new_access_token(client) -> None:
    _register(client)
    refresh_token = _login(client).cookies['refresh_token']

    response = _refresh_with(client, refresh_token)

    assert response.status_code == 200
    assert response.json()['accessToken']


def test_refresh_without_cookie_returns_401(client) -> None:
    client.cookies.clear()

    response = client.post('/auth/refresh')

    assert response.status_code == 401
    assert response.json()['error']['code'] == 'invalid_refresh_token'


def test_refresh_after_logout_returns_401(client, database) -> None:
    _register(client)
    refresh_token = _login(client).cookies['refresh_token']

    logout = client.post('/auth/logout', headers={'Cookie': f'refresh_token={refresh_token}'})
    response = _refresh_with(client, refresh_token)

    assert logout.status_code == 200
    assert response.status_code == 401
    with database.session() as db:
        assert db.query(RefreshSession).one().revoked_at is not None


def test_logout_is_idempotent_and_clears_cookie(client) -> None:
    _register(client)
    refresh_token = _login(client).cookies['refresh_token']

    first = client.post('/auth/logout', headers={'Cookie': f'refresh_token={refresh_token}'})
    second = client.post('/auth/logout', headers={'Cookie': f'refresh_token={refresh_token}'})
    client.cookies.clear()
    anonymous = client.post('/auth/logout')

    assert [first.status_code, second.status_code, anonymous.status_code] == [200, 200, 200]
    assert 'refresh_token=' in first.headers['set-cookie']


def test_me_reflects_access_token(client) -> None:
    _register(client)
    login = _login(client).json()

    response = client.get('/me', headers={'Authorization': f"Bearer {login['accessToken']}"})

    assert response.json()['user'] == {'id': login['user']['id'], 'role': 'student'}


def test_me_without_token_returns_401(client) -> None:
    assert client.get('/me').status_code == 401
    assert client.get('/me', headers={'Authorization': 'Basic abc'}).status_code == 401
