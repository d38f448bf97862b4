import pytest

from celine.linkreset.config import (
    ConfigError,
    InvalidSettingError,
    load_settings,
)


def test_load_settings_from_yaml(settings_env):
    settings = load_settings(settings_env)

    assert settings.server_url == "http://keycloak.test"
    assert settings.user_max == 10
    assert settings.real_run is False
    assert settings.client_secret == "s3cret"
    assert settings.timeout == 30.0


def test_default_config_file_is_used(settings_env):
    # settings_env chdirs into the directory holding linkreset.yaml
    assert load_settings().idp_realm == "idp-x"


def test_run_configuration_snapshot(settings_env):
    config = load_settings(settings_env).run_configuration()

    assert config.idp_realm == "idp-x"
    assert config.application_realm == "app-y"
    assert config.client_realm == "master"
    assert config.ceiling == 10
    assert config.simulate is True


def test_overrides_win_over_file(settings_env):
    settings = load_settings(settings_env, real_run=True, user_max=3, idp_realm=None)

    assert settings.real_run is True
    assert settings.user_max == 3
    assert settings.idp_realm == "idp-x"
    assert settings.run_configuration().simulate is False


def test_environment_fills_missing_values(settings_env, monkeypatch):
    settings_env.write_text(
        settings_env.read_text().replace("user_max: 10\n", "")
    )
    monkeypatch.setenv("CELINE_LINKRESET_USER_MAX", "25")

    assert load_settings(settings_env).user_max == 25


def test_env_interpolation_in_yaml(settings_env, monkeypatch):
    monkeypatch.setenv("KC_HOST", "https://kc.example.org")
    settings_env.write_text(
        settings_env.read_text().replace(
            "server_url: http://keycloak.test", "server_url: ${KC_HOST}"
        )
    )

    assert load_settings(settings_env).server_url == "https://kc.example.org"


@pytest.mark.parametrize("line", ["user_max: 10\n", "idp_realm: idp-x\n", "real_run: false\n"])
def test_missing_value_is_config_error(settings_env, line):
    settings_env.write_text(settings_env.read_text().replace(line, ""))

    with pytest.raises(ConfigError) as e:
        load_settings(settings_env)

    assert not isinstance(e.value, InvalidSettingError)
    assert str(e.value) == f"Missing required setting: {line.split(':')[0]}"


def test_empty_value_counts_as_missing(settings_env):
    settings_env.write_text(
        settings_env.read_text().replace("idp_realm: idp-x", 'idp_realm: ""')
    )

    with pytest.raises(ConfigError, match="Missing required setting: idp_realm"):
        load_settings(settings_env)


@pytest.mark.parametrize("value", ["ten", "0", "-1"])
def test_unusable_user_max_is_invalid_setting(settings_env, value):
    settings_env.write_text(
        settings_env.read_text().replace("user_max: 10", f"user_max: {value}")
    )

    with pytest.raises(InvalidSettingError) as e:
        load_settings(settings_env)

    assert e.value.name == "user_max"
    assert "user_max" in str(e.value)


def test_unset_secret_variable_is_config_error(settings_env, monkeypatch):
    monkeypatch.delenv("LINKRESET_TEST_SECRET")

    with pytest.raises(ConfigError, match="LINKRESET_TEST_SECRET is not set"):
        load_settings(settings_env)

    assert load_settings(settings_env, require_secret=False).client_secret is None


def test_missing_file_is_config_error(tmp_path):
    with pytest.raises(ConfigError, match="Config file not found"):
        load_settings(tmp_path / "nope.yaml")


def test_non_mapping_yaml_is_config_error(tmp_path):
    path = tmp_path / "linkreset.yaml"
    path.write_text("- a\n- b\n")

    with pytest.raises(ConfigError, match="must be a YAML mapping"):
        load_settings(path)


def test_urls_are_derived_from_server_url(settings_env):
    settings = load_settings(settings_env, server_url="http://kc/")

    assert settings.token_url == "http://kc/realms/master/protocol/openid-connect/token"
    assert settings.admin_url("idp-x") == "http://kc/admin/realms/idp-x"
