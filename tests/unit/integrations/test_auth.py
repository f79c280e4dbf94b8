"""
Unit tests for auth strategies.
"""
import pytest

from mediahub.integrations.auth import (
    ApiKeyHeaderAuth,
    BearerTokenAuth,
    FormLoginAuth,
    NoAuth,
    apply_auth,
)


class TestApplyAuth:
    """Test header construction for each strategy."""

    def test_api_key_header(self, make_config):
        headers = apply_auth(ApiKeyHeaderAuth("X-Api-Key"), {"Accept": "application/json"}, make_config())

        assert headers == {"Accept": "application/json", "X-Api-Key": "test-api-key"}

    def test_bearer_template_default(self, make_config):
        headers = apply_auth(BearerTokenAuth(), {}, make_config())

        assert headers["Authorization"] == "Bearer test-api-key"

    def test_bearer_custom_template(self, make_config):
        strategy = BearerTokenAuth('MediaBrowser Token="{api_key}"')

        headers = apply_auth(strategy, {}, make_config("jellyfin", api_key="jf-key"))

        assert headers["Authorization"] == 'MediaBrowser Token="jf-key"'

    @pytest.mark.parametrize("strategy", [FormLoginAuth(), NoAuth()])
    def test_strategies_without_static_headers(self, strategy, make_config):
        headers = apply_auth(strategy, {"Accept": "text/plain"}, make_config())

        assert headers == {"Accept": "text/plain"}

    def test_input_headers_are_not_mutated(self, make_config):
        original = {"Accept": "application/json"}

        apply_auth(ApiKeyHeaderAuth(), original, make_config())

        assert original == {"Accept": "application/json"}

    def test_unknown_strategy_raises(self, make_config):
        with pytest.raises(TypeError, match="Unsupported auth strategy"):
            apply_auth(object(), {}, make_config())

    def test_strategies_are_immutable(self):
        strategy = ApiKeyHeaderAuth("X-Api-Key")

        with pytest.raises(AttributeError):
            strategy.header_name = "X-Other"


class TestLoginCredentials:
    """Test how form-login credentials are read from a configuration."""

    def test_explicit_username_and_password_win(self, make_config):
        config = make_config("qbittorrent", api_key="ignored:pair", username="admin", password="secret")

        assert config.login_credentials() == ("admin", "secret")

    def test_api_key_split_on_first_colon(self, make_config):
        config = make_config("qbittorrent", api_key="admin:pa:ss")

        assert config.login_credentials() == ("admin", "pa:ss")

    def test_missing_credentials(self, make_config):
        assert make_config("qbittorrent", api_key="no-colon").login_credentials() is None

    def test_credentials_hidden_from_repr(self, make_config):
        config = make_config(api_key="super-secret-key", password="hunter2")

        assert "super-secret-key" not in repr(config)
        assert "hunter2" not in repr(config)

    def test_base_url_trailing_slash_removed(self, make_config):
        assert make_config(base_url="http://radarr.local:7878///").base_url == "http://radarr.local:7878"
