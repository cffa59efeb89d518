"""Tests for authorization URL generation and callback handling."""

from urllib.parse import parse_qs, urlparse

import pytest

from xv2auth.models.config import AuthConfig
from xv2auth.models.errors import AuthorizationCallbackError, StateValidationError
from xv2auth.models.flow import AuthorizationRequest, AuthorizationResponse
from xv2auth.primitives.pkce import PKCEManager
from xv2auth.services.flow import AuthorizationFlow


class TestStartAuthorization:
    def setup_method(self):
        # Arrange
        self.config = AuthConfig(
            client_id="test-client-123",
            client_secret="secret",
            redirect_uri="http://localhost:8080/callback",
        )
        self.flow = AuthorizationFlow(self.config)

    def test_url_carries_pkce_state_and_scopes(self):
        # Act
        pending = self.flow.start()

        # Assert - Parse the generated URL
        parsed = urlparse(pending.authorization_url)
        query_params = parse_qs(parsed.query)

        assert parsed.scheme == "https"
        assert parsed.netloc == "x.com"
        assert parsed.path == "/i/oauth2/authorize"

        assert query_params["response_type"] == ["code"]
        assert query_params["client_id"] == ["test-client-123"]
        assert query_params["redirect_uri"] == ["http://localhost:8080/callback"]
        assert query_params["code_challenge_method"] == ["S256"]
        assert query_params["code_challenge"] == [pending.pkce.code_challenge]
        assert query_params["state"] == [pending.state]
        assert query_params["scope"] == [
            "tweet.read tweet.write users.read offline.access"
        ]

        # The verifier itself never leaves the client
        assert pending.pkce.code_verifier not in pending.authorization_url
        assert PKCEManager().verify(
            pending.pkce.code_verifier, pending.pkce.code_challenge
        )

    def test_custom_scopes(self):
        # Act
        pending = self.flow.start(["users.read"])

        # Assert
        query_params = parse_qs(urlparse(pending.authorization_url).query)
        assert query_params["scope"] == ["users.read"]

    def test_each_attempt_gets_fresh_parameters(self):
        # Act
        first = self.flow.start()
        second = self.flow.start()

        # Assert
        assert first.pkce.code_verifier != second.pkce.code_verifier
        assert first.state != second.state


class TestExtractCode:
    def setup_method(self):
        self.flow = AuthorizationFlow(AuthConfig(client_id="id", client_secret="s"))

    def test_callback_url_with_matching_state(self):
        # Act
        code = self.flow.extract_code(
            "http://localhost:8080/callback?state=abc&code=the-code", "abc"
        )

        # Assert
        assert code == "the-code"

    def test_bare_code_is_accepted(self):
        assert self.flow.extract_code("  the-code\n", "abc") == "the-code"

    def test_empty_callback_is_rejected(self):
        with pytest.raises(AuthorizationCallbackError):
            self.flow.extract_code("   ", "abc")

    def test_state_mismatch(self):
        with pytest.raises(StateValidationError):
            self.flow.extract_code(
                "http://localhost:8080/callback?state=evil&code=the-code", "abc"
            )

    def test_missing_state(self):
        with pytest.raises(StateValidationError):
            self.flow.extract_code("http://localhost:8080/callback?code=c", "abc")

    def test_error_callback(self):
        # Act & Assert
        with pytest.raises(AuthorizationCallbackError) as exc_info:
            self.flow.extract_code(
                "http://localhost:8080/callback?state=abc&error=access_denied"
                "&error_description=User+denied",
                "abc",
            )

        assert "access_denied" in str(exc_info.value)
        assert not isinstance(exc_info.value, StateValidationError)

    def test_missing_code(self):
        with pytest.raises(AuthorizationCallbackError):
            self.flow.extract_code("http://localhost:8080/callback?state=abc", "abc")


class TestAuthorizationModels:
    def setup_method(self):
        self.config = AuthConfig(client_id="id", client_secret="s")
        self.pkce = PKCEManager().generate_parameters()

    def test_request_scope_comes_from_config(self):
        # Act
        request = AuthorizationRequest.for_attempt(self.config, self.pkce, "st")

        # Assert
        assert request.scope == "tweet.read tweet.write users.read offline.access"
        assert request.code_challenge == self.pkce.code_challenge

    def test_empty_scope_is_left_out_of_url(self):
        # Arrange
        request = AuthorizationRequest.for_attempt(self.config, self.pkce, "st", [])

        # Act
        query_params = parse_qs(urlparse(request.url()).query)

        # Assert
        assert "scope" not in query_params
        assert query_params["code_challenge_method"] == ["S256"]

    def test_response_from_error_callback(self):
        # Act
        response = AuthorizationResponse.from_callback_url(
            "http://localhost:8080/callback?state=st&error=access_denied"
            "&error_description=User+denied"
        )

        # Assert
        assert response.is_error()
        assert response.code is None
        assert response.state == "st"
        assert response.error_description == "User denied"
