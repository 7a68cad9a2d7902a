"""Integration tests for the account blueprint Azure Functions."""
import json
import re
from unittest.mock import patch

import pytest

from tvratings_service.blueprints.account_bp import follow, get_follow_list, login
from tvratings_service.exceptions import TransientError


@pytest.fixture
def patched_backend(mock_backend):
    with patch('tvratings_service.blueprints.account_bp.get_backend', return_value=mock_backend):
        yield mock_backend


@pytest.fixture
def login_request(make_request):
    def build(payload, ip='1.2.3.4:51234'):
        return make_request(
            method='POST',
            url='/login',
            headers={'X-Forwarded-For': ip, 'Content-Type': 'application/json'},
            body=json.dumps(payload).encode('utf-8') if not isinstance(payload, bytes) else payload
        )
    return build


@pytest.fixture
def auth_headers(patched_backend):
    token = patched_backend.token_manager.create_token('a@b.c')
    return {'Cookie': f'jwt={token}'}


class TestLoginRequestCode:
    """Tests for the first login step."""

    def test_sends_code(self, patched_backend, login_request):
        """Test a code is stored and emailed."""
        # Act
        response = login(login_request({'email': 'a@b.c', 'recaptcha': 'ok'}))

        # Assert
        assert response.status_code == 200
        assert json.loads(response.get_body()) == {}

        codes = patched_backend.user_store.query("SELECT * FROM codes")
        assert len(codes) == 1
        assert codes[0]['email'] == 'a@b.c'
        assert re.fullmatch(r'[0-9A-Z]{6}', codes[0]['code'])

        to, subject, content = patched_backend.mailer.send_mail.call_args[0]
        assert to == 'a@b.c'
        assert codes[0]['code'] in content
        patched_backend.recaptcha.verify_token.assert_called_once_with('ok')

    def test_rate_limited_after_three_calls(self, patched_backend, login_request):
        """Test the fourth call from the same client within a minute is refused."""
        statuses = [login(login_request({'email': 'a@b.c', 'recaptcha': 'ok'})).status_code for _ in range(4)]

        assert statuses == [200, 200, 200, 429]

    def test_rate_limit_is_per_client(self, patched_backend, login_request):
        """Test another client is not affected."""
        for _ in range(3):
            login(login_request({'email': 'a@b.c', 'recaptcha': 'ok'}, ip='1.2.3.4:1'))

        response = login(login_request({'email': 'a@b.c', 'recaptcha': 'ok'}, ip='5.6.7.8:1'))

        assert response.status_code == 200

    def test_missing_email(self, patched_backend, login_request):
        """Test missing email returns 400."""
        response = login(login_request({'recaptcha': 'ok'}))

        assert response.status_code == 400
        assert json.loads(response.get_body()) == {"error": "email not found"}

    def test_invalid_recaptcha(self, patched_backend, login_request):
        """Test a failed recaptcha returns 400 and sends nothing."""
        patched_backend.recaptcha.verify_token.return_value = False

        response = login(login_request({'email': 'a@b.c', 'recaptcha': 'bad'}))

        assert response.status_code == 400
        assert json.loads(response.get_body()) == {"error": "recaptcha not found or invalid"}
        patched_backend.mailer.send_mail.assert_not_called()

    def test_invalid_json(self, patched_backend, login_request):
        """Test a malformed body returns 400."""
        response = login(login_request(b'{not json'))

        assert response.status_code == 400

    def test_mail_failure(self, patched_backend, login_request):
        """Test a mail failure returns 500."""
        patched_backend.mailer.send_mail.side_effect = TransientError("smtp down")

        response = login(login_request({'email': 'a@b.c', 'recaptcha': 'ok'}))

        assert response.status_code == 500
        assert json.loads(response.get_body()) == {"error": "sending mail failed"}


class TestLoginWithCode:
    """Tests for the second login step."""

    def test_valid_code_sets_cookie(self, patched_backend, login_request):
        """Test a valid code yields a signed token cookie."""
        # Arrange
        patched_backend.user_store.add_verification_code('a@b.c', 'ABC123')

        # Act
        response = login(login_request({'email': 'a@b.c', 'recaptcha': 'ok', 'code': 'ABC123'}))

        # Assert
        assert response.status_code == 200
        cookie = response.headers.get('Set-Cookie')
        assert cookie.startswith('jwt=')
        for attribute in ('HttpOnly', 'Secure', 'SameSite=Strict', 'Max-Age=3600', 'Path=/'):
            assert attribute in cookie

        token = cookie.split(';')[0].split('=', 1)[1]
        assert patched_backend.token_manager.verify_token(token) == 'a@b.c'

    def test_code_is_single_use(self, patched_backend, login_request):
        """Test a code cannot be used twice."""
        patched_backend.user_store.add_verification_code('a@b.c', 'ABC123')
        login(login_request({'email': 'a@b.c', 'recaptcha': 'ok', 'code': 'ABC123'}))

        response = login(login_request({'email': 'a@b.c', 'recaptcha': 'ok', 'code': 'ABC123'}))

        assert response.status_code == 400

    def test_invalid_code(self, patched_backend, login_request):
        """Test a wrong code returns 400 without a cookie."""
        patched_backend.user_store.add_verification_code('a@b.c', 'ABC123')

        response = login(login_request({'email': 'a@b.c', 'recaptcha': 'ok', 'code': 'WRONG1'}))

        assert response.status_code == 400
        assert json.loads(response.get_body()) == {"error": "verification code invalid"}
        assert response.headers.get('Set-Cookie') is None


class TestFollowList:
    """Tests for get_follow_list function."""

    def test_requires_token(self, patched_backend, make_request):
        """Test missing cookie returns 401."""
        response = get_follow_list(make_request(url='/followlist'))

        assert response.status_code == 401
        assert json.loads(response.get_body()) == {"error": "user not authenticated"}

    def test_rejects_forged_token(self, patched_backend, make_request):
        """Test a token signed with another secret returns 401."""
        from tvratings_service.services.token_service import SignedTokenManager
        forged = SignedTokenManager('other-secret').create_token('a@b.c')

        response = get_follow_list(make_request(url='/followlist', headers={'Cookie': f'jwt={forged}'}))

        assert response.status_code == 401

    def test_lists_follows(self, patched_backend, make_request, auth_headers):
        """Test the follow list with titles."""
        patched_backend.user_store.follow_show('a@b.c', 'tt0903747')

        response = get_follow_list(make_request(url='/followlist', headers=auth_headers))

        assert response.status_code == 200
        assert json.loads(response.get_body()) == [{"showId": "tt0903747", "title": "Breaking Bad"}]


class TestFollow:
    """Tests for follow function."""

    def test_follow_and_unfollow(self, patched_backend, make_request, auth_headers):
        """Test following then unfollowing returns the updated list each time."""
        # Act
        followed = follow(make_request(url='/follow', headers=auth_headers,
                                       params={'showId': 'tt0386676', 'follow': 'TRUE'}))
        unfollowed = follow(make_request(url='/follow', headers=auth_headers,
                                         params={'showId': 'tt0386676', 'follow': 'false'}))

        # Assert
        assert followed.status_code == 200
        assert json.loads(followed.get_body()) == [{"showId": "tt0386676", "title": "The Office"}]
        assert unfollowed.status_code == 200
        assert json.loads(unfollowed.get_body()) == []

    @pytest.mark.parametrize("params", [{}, {'showId': 'tt1'}, {'follow': 'true'}, {'showId': 'tt1', 'follow': 'yes'}])
    def test_missing_or_invalid_params(self, patched_backend, make_request, auth_headers, params):
        """Test missing showId or a non-boolean follow returns 400."""
        response = follow(make_request(url='/follow', headers=auth_headers, params=params))

        assert response.status_code == 400
        assert json.loads(response.get_body()) == {"error": "showId or follow not found"}

    def test_requires_token(self, patched_backend, make_request):
        """Test missing cookie returns 401."""
        response = follow(make_request(url='/follow', params={'showId': 'tt1', 'follow': 'true'}))

        assert response.status_code == 401
