import pytest

from conftest import add_vehicle


def _register_and_login(client, email: str, role: str, full_name: str) -> tuple[dict, dict]:
    registered = client.post(
        '/auth/register',
        json={'email': email, 'password': 'password1', 'role': role, 'fullName': full_name},
    )
    assert registered.status_code == 201
    login = client.post('/auth/login', json={'email': email, 'password': 'password1'}).json()
    return login['user'], {'Authorization': f"Bearer {login['accessToken']}"}


def _profile_id(client, headers: dict, kind: str, email: str) -> str:
    rows = client.get(f'/catalog/{kind}', headers=headers).json()[kind]
    return next(row['id'] for row in rows if row['email'] == email)


def _lesson(student_id, instructor_id, starts_at, ends_at, **extra) -> dict:
    return {'studentId': student_id, 'instructorId': instructor_id, 'startsAt': starts_at, 'endsAt': ends_at, **extra}


@pytest.fixture
def school(client):
    _, admin = _register_and_login(client, 'a@x.com', 'admin', 'Ada Admin')
    _, instructor = _register_and_login(client, 'i@x.com', 'instructor', 'Ivy Instructor')
    _, student = _register_and_login(client, 's@x.com', 'student', 'Sam Student')
    _register_and_login(client, 't@x.com', 'student', 'Tia Student')
    return {
        'admin': admin,
        'instructor': instructor,
        'student': student,
        'instructor_id': _profile_id(client, admin, 'instructors', 'i@x.com'),
        'student_id': _profile_id(client, admin, 'students', 's@x.com'),
        'other_student_id': _profile_id(client, admin, 'students', 't@x.com'),
    }


def test_end_to_end_booking_scenario(client, school) -> None:
    first = client.post(
        '/lessons',
        headers=school['admin'],
        json=_lesson(school['student_id'], school['instructor_id'], '2026-01-17T14:00Z', '2026-01-17T15:00Z'),
    )
    overlapping = client.post(
        '/lessons',
        headers=school['admin'],
        json=_lesson(school['other_student_id'], school['instructor_id'], '2026-01-17T14:30Z', '2026-01-17T15:30Z'),
    )
    adjacent = client.post(
        '/lessons',
        headers=school['admin'],
        json=_lesson(school['other_student_id'], school['instructor_id'], '2026-01-17T15:00Z', '2026-01-17T16:00Z'),
    )

    assert first.status_code == 201
    assert first.json()['lesson']['studentName'] == 'Sam Student'
    assert first.json()['lesson']['instructorName'] == 'Ivy Instructor'
    assert overlapping.status_code == 409
    assert overlapping.json()['error']['code'] == 'instructor_conflict'
    assert adjacent.status_code == 201


def test_vehicle_conflict_returns_409(client, database, school) -> None:
    vehicle_id = add_vehicle(database)
    _, other_instructor = _register_and_login(client, 'j@x.com', 'instructor', 'Jay Instructor')
    other_instructor_id = _profile_id(client, school['admin'], 'instructors', 'j@x.com')

    first = client.post(
        '/lessons',
        headers=school['admin'],
        json=_lesson(school['student_id'], school['instructor_id'], '2026-01-17T14:00Z', '2026-01-17T15:00Z',
                     vehicleId=vehicle_id),
    )
    second = client.post(
        '/lessons',
        headers=other_instructor,
        json=_lesson(school['other_student_id'], other_instructor_id, '2026-01-17T14:30Z', '2026-01-17T15:30Z',
                     vehicleId=vehicle_id),
    )

    assert first.json()['lesson']['vehicleLabel'] == 'Toyota Yaris (AB12 CDE)'
    assert second.status_code == 409
    assert second.json()['error']['code'] == 'vehicle_conflict'


def test_student_cannot_create_lessons(client, school) -> None:
    response = client.post(
        '/lessons',
        headers=school['student'],
        json=_lesson(school['student_id'], school['instructor_id'], '2026-01-17T14:00Z', '2026-01-17T15:00Z'),
    )

    assert response.status_code == 403
    assert response.json()['error']['code'] == 'forbidden'


def test_create_without_token_returns_401(client, school) -> None:
    response = client.post(
        '/lessons',
        json=_lesson(school['student_id'], school['instructor_id'], '2026-01-17T14:00Z', '2026-01-17T15:00Z'),
    )

    assert response.status_code == 401


@pytest.mark.parametrize(
    ('starts_at', 'ends_at', 'code'),
    [
        ('2026-01-17T15:00Z', '2026-01-17T14:00Z', 'invalid_range'),
        ('2026-01-17T14:00', '2026-01-17T15:00', 'validation_error'),
        ('yesterday', '2026-01-17T15:00Z', 'validation_error'),
    ],
)
def test_invalid_times_return_400(client, school, starts_at, ends_at, code) -> None:
    response = client.post(
        '/lessons',
        headers=school['admin'],
        json=_lesson(school['student_id'], school['instructor_id'], starts_at, ends_at),
    )

    assert response.status_code == 400
    assert response.json()['error']['code'] == code


def test_list_lessons_is_scoped_by_role(client, school) -> None:
    client.post(
        '/lessons',
        headers=school['instructor'],
        json=_lesson(school['student_id'], school['instructor_id'], '2026-01-17T14:00Z', '2026-01-17T15:00Z'),
    )
    client.post(
        '/lessons',
        headers=school['admin'],
        json=_lesson(school['other_student_id'], school['instructor_id'], '2026-01-18T14:00Z', '2026-01-18T15:00Z'),
    )

    admin_view = client.get('/lessons', headers=school['admin']).json()['lessons']
    student_view = client.get('/lessons', headers=school['student']).json()['lessons']
    limited = client.get('/lessons', params={'limit': 1}, headers=school['admin']).json()['lessons']

    assert [lesson['startsAt'][:10] for lesson in admin_view] == ['2026-01-18', '2026-01-17']
    assert [lesson['studentName'] for lesson in student_view] == ['Sam Student']
    assert len(limited) == 1


def test_list_lessons_requires_authentication(client) -> None:
    assert client.get('/lessons').status_code == 401


def test_catalog_is_staff_only(client, school) -> None:
    assert client.get('/catalog/students', headers=school['student']).status_code == 403
    assert client.get('/catalog/vehicles', headers=school['instructor']).status_code == 200


def test_health_endpoints(client) -> None:
    assert client.get('/health').json()['ok'] is True
    assert client.get('/health/db').json() == {'ok': True}
