import pytest

from xv2auth.models.errors import AuthProviderError, OAuth2Error, TransportError
from xv2auth.models.tokens import RefreshTokenRequest, TokenRequest, TokenResponse


class TestTokenResponse:
    def test_expiry_is_fixed_at_issue_time(self):
        # Arrange
        response = TokenResponse(
            access_token="AT1", expires_in=7200, scope="tweet.read offline.access"
        )

        # Act
        credential = response.to_credential(issued_at=1000.0)

        # Assert
        assert credential.expires_at == 8200.0
        assert credential.scope == frozenset({"tweet.read", "offline.access"})

    def test_error_response_cannot_become_credential(self):
        response = TokenResponse(error="invalid_grant")

        assert response.is_error()
        assert not response.is_success()
        with pytest.raises(ValueError):
            response.to_credential(issued_at=0.0)


class TestRequestForms:
    def test_code_request_form(self):
        request = TokenRequest(
            code="c", redirect_uri="http://localhost/cb", client_id="id", code_verifier="v"
        )

        assert request.to_form_data() == {
            "grant_type": "authorization_code",
            "code": "c",
            "redirect_uri": "http://localhost/cb",
            "client_id": "id",
            "code_verifier": "v",
        }
        assert "'v'" not in repr(request)

    def test_refresh_request_form(self):
        request = RefreshTokenRequest(refresh_token="rt", client_id="id")

        assert request.to_form_data() == {
            "grant_type": "refresh_token",
            "refresh_token": "rt",
            "client_id": "id",
        }


class TestErrors:
    def test_provider_error_message(self):
        error = AuthProviderError("invalid_grant", "Token expired", status_code=400)

        assert str(error) == "invalid_grant: Token expired (HTTP 400)"
        assert isinstance(error, OAuth2Error)

    @pytest.mark.parametrize(
        "status_code, retryable",
        [(400, False), (401, False), (429, True), (500, True), (None, False)],
    )
    def test_provider_error_retryable(self, status_code, retryable):
        assert AuthProviderError("e", status_code=status_code).retryable is retryable

    def test_transport_error_is_retryable(self):
        assert TransportError("boom").retryable
