import pytest
from pydantic import ValidationError

from lnfaucet.settings import (
    DEFAULT_MAX_CHANNEL_SIZE,
    DEFAULT_MIN_CHANNEL_SIZE,
    Environment,
    FaucetSettings,
    LogLevel,
    PolicySettings,
    Settings,
)


def test_policy_defaults():
    policy = PolicySettings()
    assert policy.min_channel_size == DEFAULT_MIN_CHANNEL_SIZE
    assert policy.max_channel_size == DEFAULT_MAX_CHANNEL_SIZE
    assert policy.zombie_age_hours == 48
    assert policy.sweep_interval_minutes == 60


@pytest.mark.parametrize('field', [
    'min_channel_size', 'max_channel_size', 'zombie_age_hours',
    'sweep_interval_minutes', 'num_confs'])
def test_policy_values_must_be_positive(field):
    with pytest.raises(ValidationError):
        PolicySettings(**{field: 0})


def test_min_must_not_exceed_max():
    with pytest.raises(ValidationError):
        PolicySettings(min_channel_size=2000, max_channel_size=1000)
    assert PolicySettings(min_channel_size=1000, max_channel_size=1000)


def test_policy_is_frozen():
    policy = PolicySettings()
    with pytest.raises(ValidationError):
        policy.min_channel_size = 1


def test_env_overrides(monkeypatch):
    monkeypatch.setenv('ZOMBIE_AGE_HOURS', '12')
    monkeypatch.setenv('NETWORK', 'regtest')
    monkeypatch.setenv('LOG_LEVEL', 'DEBUG')
    settings = Settings()
    assert settings.zombie_age_hours == 12
    assert settings.network == 'regtest'
    assert settings.log_level == LogLevel.DEBUG


def test_init_beats_env(monkeypatch):
    monkeypatch.setenv('BIND_PORT', '9000')
    assert Settings(bind_port=9100).bind_port == 9100


@pytest.mark.parametrize('value', ['dev', 'DEVELOPMENT', 'development'])
def test_environment_aliases(value):
    assert FaucetSettings(environment=value).environment == Environment.DEV


def test_bad_port():
    with pytest.raises(ValidationError):
        Settings(bind_port=70000)


def test_permissions_path_must_exist(tmp_path):
    with pytest.raises(ValidationError):
        Settings(permissions_file_path=(tmp_path / 'missing.macaroon').as_posix())

    macaroon = tmp_path / 'admin.macaroon'
    macaroon.write_bytes(b'\x02')
    settings = Settings(permissions_file_path=macaroon.as_posix())
    assert settings.model_dump()['permissions_file_path'] == macaroon.as_posix()
