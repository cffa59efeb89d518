import pytest

from xv2auth.models.config import AuthConfig
from xv2auth.models.errors import ConfigurationError


class TestAuthConfig:
    def test_defaults_target_x_api(self):
        config = AuthConfig(client_id="id", client_secret="secret")

        assert config.token_endpoint == "https://api.x.com/2/oauth2/token"
        assert config.authorization_endpoint == "https://x.com/i/oauth2/authorize"
        assert "offline.access" in config.scopes
        assert config.refresh_token is None
        assert config.safety_margin == 30.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"client_id": "", "client_secret": "secret"},
            {"client_id": "id", "client_secret": ""},
            {"client_id": "id", "client_secret": "secret", "safety_margin": -1},
            {"client_id": "id", "client_secret": "secret", "timeout": 0},
            {"client_id": "id", "client_secret": "secret", "client_auth": "jwt"},
            {
                "client_id": "id",
                "client_secret": "secret",
                "access_token_expires_at": 1.0,
            },
        ],
    )
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ConfigurationError):
            AuthConfig(**kwargs)

    def test_repr_hides_secrets(self):
        config = AuthConfig(
            client_id="id",
            client_secret="top-secret",
            refresh_token="rt-secret",
            access_token="at-secret",
        )

        assert "top-secret" not in repr(config)
        assert "rt-secret" not in repr(config)
        assert "at-secret" not in repr(config)


class TestFromEnv:
    def test_reads_credentials_and_seed_token(self):
        # Act
        config = AuthConfig.from_env(
            {
                "X_CLIENT_ID": "id",
                "X_CLIENT_SECRET": "secret",
                "X_REFRESH_TOKEN": "RT0",
                "X_REDIRECT_URI": "https://app.example.com/cb",
            }
        )

        # Assert
        assert config.client_id == "id"
        assert config.client_secret == "secret"
        assert config.refresh_token == "RT0"
        assert config.redirect_uri == "https://app.example.com/cb"

    def test_empty_refresh_token_means_none(self):
        config = AuthConfig.from_env(
            {"X_CLIENT_ID": "id", "X_CLIENT_SECRET": "secret", "X_REFRESH_TOKEN": ""}
        )

        assert config.refresh_token is None

    def test_missing_credentials(self):
        with pytest.raises(ConfigurationError):
            AuthConfig.from_env({"X_CLIENT_ID": "id"})

    def test_defaults_to_process_environment(self, monkeypatch):
        # Arrange
        monkeypatch.setenv("X_CLIENT_ID", "env-id")
        monkeypatch.setenv("X_CLIENT_SECRET", "env-secret")
        monkeypatch.delenv("X_REFRESH_TOKEN", raising=False)

        # Act
        config = AuthConfig.from_env()

        # Assert
        assert config.client_id == "env-id"
        assert config.refresh_token is None

    def test_reads_seed_access_token(self):
        # Act
        config = AuthConfig.from_env(
            {
                "X_CLIENT_ID": "id",
                "X_CLIENT_SECRET": "secret",
                "X_BEARER_TOKEN": "AT-seed",
                "X_BEARER_TOKEN_EXPIRES_AT": "1700003600",
            }
        )

        # Assert
        assert config.access_token == "AT-seed"
        assert config.access_token_expires_at == 1700003600.0

    def test_seed_access_token_without_expiry(self):
        config = AuthConfig.from_env(
            {"X_CLIENT_ID": "id", "X_CLIENT_SECRET": "secret", "X_BEARER_TOKEN": "AT"}
        )

        assert config.access_token == "AT"
        assert config.access_token_expires_at is None

    def test_non_numeric_seed_expiry(self):
        with pytest.raises(ConfigurationError):
            AuthConfig.from_env(
                {
                    "X_CLIENT_ID": "id",
                    "X_CLIENT_SECRET": "secret",
                    "X_BEARER_TOKEN": "AT",
                    "X_BEARER_TOKEN_EXPIRES_AT": "tomorrow",
                }
            )
