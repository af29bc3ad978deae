import pytest
from reviewflow.main import create_app
from reviewflow.utils.security import generate_token


@pytest.fixture
def client(people):
    app = create_app('testing')
    app.config['TESTING'] = True
    return app.test_client()


@pytest.fixture
def auth(people):
    """Authorization headers for a named participant"""
    def _headers(who):
        user = people[who]
        token = generate_token({'user_id': user.id, 'role': user.role.value})
        return {'Authorization': f'Bearer {token}'}
    return _headers


class TestAuthGuards:
    """Test token and role checks"""

    def test_health(self, client):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.get_json() == {'status': 'ok'}

    def test_missing_token(self, client):
        response = client.get('/api/availability/me')
        assert response.status_code == 401

    def test_bad_token(self, client):
        response = client.get('/api/availability/me', headers={'Authorization': 'Bearer not-a-token'})
        assert response.status_code == 401

    def test_wrong_role(self, client, auth):
        response = client.post('/api/availability', json={}, headers=auth('student'))
        assert response.status_code == 403

    def test_unknown_route(self, client):
        response = client.get('/api/nothing-here')
        assert response.status_code == 404
        assert response.get_json() == {'error': 'Not found'}


class TestAvailabilityRoutes:
    """Test the availability endpoints"""

    def test_create_and_conflict(self, client, auth):
        window = {'day_of_week': 1, 'start_time': '09:00', 'end_time': '11:00'}

        response = client.post('/api/availability', json=window, headers=auth('reviewer'))
        assert response.status_code == 201
        created = response.get_json()['availability']
        assert created['day_name'] == 'Monday'

        response = client.post(
            '/api/availability', json={**window, 'start_time': '10:00', 'end_time': '12:00'},
            headers=auth('reviewer')
        )
        assert response.status_code == 409
        body = response.get_json()
        assert body['conflict_type'] == 'overlap'
        assert body['existing']['id'] == created['id']

    def test_validation_error_names_field(self, client, auth):
        response = client.post(
            '/api/availability', json={'day_of_week': 1, 'start_time': '25:00', 'end_time': '26:00'},
            headers=auth('reviewer')
        )
        assert response.status_code == 400
        assert response.get_json()['field'] == 'start_time'

    def test_by_date(self, client, auth):
        client.post(
            '/api/availability', json={'day_of_week': 1, 'start_time': '09:00', 'end_time': '11:00'},
            headers=auth('reviewer')
        )
        client.post(
            '/api/availability/breaks', json={'day_of_week': 1, 'start_time': '12:00', 'end_time': '13:00'},
            headers=auth('reviewer')
        )

        response = client.get('/api/availability/by-date?date=2030-01-07', headers=auth('advisor'))
        assert response.status_code == 200
        body = response.get_json()
        assert body['date'] == '2030-01-07'
        assert [(s['start_time'], s['is_booked']) for s in body['slots']] == [('09:00', False)]

        response = client.get('/api/availability/by-date?date=07-01-2030', headers=auth('advisor'))
        assert response.status_code == 400

        response = client.get('/api/availability/by-date?date=2030-01-07', headers=auth('student'))
        assert response.status_code == 403

    def test_delete(self, client, auth):
        response = client.post(
            '/api/availability', json={'day_of_week': 2, 'start_time': '09:00', 'end_time': '10:00'},
            headers=auth('reviewer')
        )
        window_id = response.get_json()['availability']['id']

        assert client.delete(f'/api/availability/{window_id}', headers=auth('second_reviewer')).status_code == 404
        assert client.delete(f'/api/availability/{window_id}', headers=auth('reviewer')).status_code == 200

    def test_reviewers_overview(self, client, auth):
        response = client.get('/api/availability/reviewers', headers=auth('advisor'))
        assert response.status_code == 200
        names = [r['name'] for r in response.get_json()['reviewers']]
        assert names == ['Remy Reviewer', 'Rita Reviewer']


class TestReviewRoutes:
    """Test the review lifecycle over HTTP"""

    def schedule(self, client, auth, people, **overrides):
        data = {
            'student_id': people['student'].id,
            'reviewer_id': people['reviewer'].id,
            'week': 2,
            'scheduled_at': '2030-01-07T09:30:00',
            'mode': 'online',
        }
        data.update(overrides)
        return client.post('/api/reviews', json=data, headers=auth('advisor'))

    def test_lifecycle(self, client, auth, people):
        response = self.schedule(client, auth, people)
        assert response.status_code == 201
        review_id = response.get_json()['review']['id']

        response = client.patch(f'/api/reviews/{review_id}/complete', json={}, headers=auth('reviewer'))
        assert response.status_code == 400

        response = client.patch(f'/api/reviews/{review_id}/accept', headers=auth('reviewer'))
        assert response.status_code == 200
        assert response.get_json()['review']['status'] == 'accepted'

        response = client.patch(f'/api/reviews/{review_id}/complete', json={
            'scores': {
                'technical_understanding': 8,
                'task_completion': 7.5,
                'communication': 9,
                'problem_solving': 6.5,
            },
            'feedback': 'Clear explanations, tests were thin',
        }, headers=auth('reviewer'))
        assert response.status_code == 200
        assert response.get_json()['evaluation']['average_score'] == 7.75

        response = client.patch(
            f'/api/reviews/{review_id}/final-score', json={'final_score': 9, 'attendance': 8},
            headers=auth('advisor')
        )
        assert response.status_code == 200
        assert response.get_json()['review']['marks'] == 9.0

        response = client.get(f'/api/reviews/{review_id}/evaluations', headers=auth('student'))
        body = response.get_json()
        assert response.status_code == 200
        assert body['reviewer_evaluation'] is None
        assert body['final_evaluation']['final_score'] == 9.0

        response = client.get('/api/reviews/student/history', headers=auth('student'))
        assert [r['marks'] for r in response.get_json()['review_history']] == [9.0]

        response = client.get('/api/notifications', headers=auth('student'))
        events = [n['event'] for n in response.get_json()['notifications']]
        assert events == ['final_score_published', 'review_scheduled']

    def test_state_error_reports_status(self, client, auth, people):
        review_id = self.schedule(client, auth, people).get_json()['review']['id']
        client.patch(f'/api/reviews/{review_id}/cancel', json={'reason': 'venue closed'}, headers=auth('advisor'))

        response = client.patch(
            f'/api/reviews/{review_id}/reschedule', json={'scheduled_at': '2030-01-09T10:00:00'},
            headers=auth('advisor')
        )
        assert response.status_code == 400
        assert response.get_json()['current_status'] == 'cancelled'

    def test_double_booking(self, client, auth, people):
        assert self.schedule(client, auth, people).status_code == 201

        response = self.schedule(client, auth, people)
        assert response.status_code == 409
        assert response.get_json()['conflict_type'] == 'booked'

    def test_other_advisor_forbidden(self, client, auth, people):
        review_id = self.schedule(client, auth, people).get_json()['review']['id']

        response = client.get(f'/api/reviews/{review_id}', headers=auth('other_advisor'))
        assert response.status_code == 403

        response = client.get(f'/api/reviews/{review_id}', headers=auth('reviewer'))
        assert response.status_code == 200

    def test_reviewer_listing(self, client, auth, people):
        self.schedule(client, auth, people)

        response = client.get('/api/reviews/reviewer?status=pending', headers=auth('reviewer'))
        assert len(response.get_json()['reviews']) == 1

        response = client.get('/api/reviews/reviewer?status=archived', headers=auth('reviewer'))
        assert response.status_code == 400

    def test_mark_notification_read(self, client, auth, people):
        self.schedule(client, auth, people)
        notifications = client.get('/api/notifications', headers=auth('reviewer')).get_json()['notifications']

        response = client.patch(f"/api/notifications/{notifications[0]['id']}/read", headers=auth('student'))
        assert response.status_code == 404

        response = client.patch(f"/api/notifications/{notifications[0]['id']}/read", headers=auth('reviewer'))
        assert response.get_json()['notification']['is_read'] is True

        response = client.get('/api/notifications?unread=true', headers=auth('reviewer'))
        assert response.get_json()['notifications'] == []
