"""
Tests for session verification and identifier hygiene
"""

import pytest
from jose import jwt

from tuneforge.config import SecuritySettings
from tuneforge.core.exceptions import AuthenticationError, ValidationError
from tuneforge.core.security import (
    composite_job_key,
    normalize_job_id,
    owns_artifact_key,
    sanitize_identifier,
    secret_matches,
    session_user_id,
)


@pytest.fixture
def security():
    return SecuritySettings()


class TestSessionTokens:
    """Tests for session token verification"""

    def test_subject_is_user_id(self, security, make_token):
        assert session_user_id(make_token("user-42"), security) == "user-42"

    def test_wrong_signature_rejected(self, security, make_token):
        token = make_token("user-42", secret="not-the-secret")

        with pytest.raises(AuthenticationError):
            session_user_id(token, security)

    def test_token_without_subject_rejected(self, security):
        token = jwt.encode({"email": "a@b.co"}, security.session_secret, algorithm="HS256")

        with pytest.raises(AuthenticationError):
            session_user_id(token, security)

    def test_garbage_rejected(self, security):
        with pytest.raises(AuthenticationError):
            session_user_id("not-a-token", security)


class TestSharedSecrets:
    """Tests for constant-time secret comparison"""

    def test_match(self):
        assert secret_matches("s3cret", "s3cret")

    @pytest.mark.parametrize("presented", [None, "", "s3cre", "s3cret!"])
    def test_mismatch(self, presented):
        assert not secret_matches(presented, "s3cret")


class TestJobIdentifiers:
    """Tests for job id normalization and the composite cancel key"""

    @pytest.mark.parametrize("value,expected", [
        ("3", "3"),
        (3, "3"),
        (" 7 ", "7"),
    ])
    def test_normalize_accepts_strings_and_ints(self, value, expected):
        assert normalize_job_id(value) == expected

    @pytest.mark.parametrize("value", [None, "", "   ", True, 1.5, ["1"], "9" * 65])
    def test_normalize_rejects(self, value):
        with pytest.raises(ValidationError):
            normalize_job_id(value)

    def test_composite_key(self):
        assert composite_job_key("u1", "3") == "u1_3"

    @pytest.mark.parametrize("user_id,job_id", [
        ("u1", "1; rm -rf /"),
        ("u1", "1&user_plus_job_id=other_1"),
        ("u 1", "1"),
        ("u1", "1/.."),
    ])
    def test_composite_key_rejects_unsafe_characters(self, user_id, job_id):
        with pytest.raises(ValidationError) as exc_info:
            composite_job_key(user_id, job_id)

        assert exc_info.value.message == "Invalid user or job ID format"

    def test_sanitize_identifier(self):
        assert sanitize_identifier('3"; x=..\\') == "3___x____"
        assert sanitize_identifier("job-7_b") == "job-7_b"

    def test_owned_artifact_key(self):
        assert owns_artifact_key("u1", "u1/3/checkpoint.zip")

    @pytest.mark.parametrize("key", [
        "u2/3/checkpoint.zip",
        "u10/3/checkpoint.zip",
        "u1",
        "u1/../u2/3/checkpoint.zip",
        "u1//checkpoint.zip",
    ])
    def test_foreign_artifact_key(self, key):
        assert not owns_artifact_key("u1", key)
