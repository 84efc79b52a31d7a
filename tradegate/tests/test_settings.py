import pytest
from pydantic import ValidationError

from tradegate.config import DEFAULT_INTENTS, GatewaySettings


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("TRADEGATE_CONFIG_FILE", "TRADEGATE_TOKEN", "TRADEGATE_INTENTS", "TRADEGATE_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = GatewaySettings(token="abc")

    assert settings.intents == DEFAULT_INTENTS
    assert settings.api_version == 10
    assert settings.interaction_timeout_seconds == 2.5
    assert settings.interaction_response_window_seconds == 3.0
    assert settings.transport == "websocket"
    assert settings.gateway_url is None
    assert "abc" not in repr(settings)


def test_interaction_timeout_must_fit_the_response_window():
    with pytest.raises(ValidationError):
        GatewaySettings(interaction_timeout_seconds=3.0)
    with pytest.raises(ValidationError):
        GatewaySettings(interaction_timeout_seconds=4.0, interaction_response_window_seconds=3.0)

    assert GatewaySettings(interaction_timeout_seconds=2.9).interaction_timeout_seconds == 2.9


@pytest.mark.parametrize("jitter", [-0.1, 1.5])
def test_jitter_is_bounded(jitter):
    with pytest.raises(ValidationError):
        GatewaySettings(reconnect_jitter=jitter)


def test_invalid_session_delay_bounds_are_ordered():
    with pytest.raises(ValidationError):
        GatewaySettings(invalid_session_delay_min_seconds=6.0, invalid_session_delay_max_seconds=5.0)


def test_environment_variables_are_read(monkeypatch):
    monkeypatch.setenv("TRADEGATE_TOKEN", "from-env")
    monkeypatch.setenv("TRADEGATE_INTENTS", "1")
    monkeypatch.setenv("TRADEGATE_LOG_LEVEL", "debug")

    settings = GatewaySettings()

    assert settings.token == "from-env"
    assert settings.intents == 1
    assert settings.log_level == "DEBUG"


def test_yaml_config_file_is_loaded(monkeypatch, tmp_path):
    path = tmp_path / "gateway.yaml"
    path.write_text("token: from-file\nintents: 512\ntransport: dummy\n", encoding="utf-8")
    monkeypatch.setenv("TRADEGATE_CONFIG_FILE", str(path))

    settings = GatewaySettings()

    assert settings.token == "from-file"
    assert settings.intents == 512
    assert settings.transport == "dummy"
    assert settings.config_path == path


def test_default_location_is_searched(tmp_path):
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "gateway.yml").write_text("api_version: 9\n", encoding="utf-8")

    assert GatewaySettings().api_version == 9


def test_explicit_arguments_override_the_file(monkeypatch, tmp_path):
    path = tmp_path / "gateway.yaml"
    path.write_text("token: from-file\n", encoding="utf-8")
    monkeypatch.setenv("TRADEGATE_CONFIG_FILE", str(path))

    assert GatewaySettings(token="explicit").token == "explicit"


def test_config_file_must_be_a_mapping(monkeypatch, tmp_path):
    path = tmp_path / "gateway.yaml"
    path.write_text("- not\n- a mapping\n", encoding="utf-8")
    monkeypatch.setenv("TRADEGATE_CONFIG_FILE", str(path))

    with pytest.raises(ValueError):
        GatewaySettings()


def test_require_token():
    assert GatewaySettings(token="abc").require_token() == "abc"
    with pytest.raises(ValueError):
        GatewaySettings().require_token()
