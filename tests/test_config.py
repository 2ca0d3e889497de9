from datetime import timedelta

import pytest

from httpscaler.config import ConfigError, ScalerConfig, parse_config, parse_duration

REQUIRED = {
    "KEDA_HTTP_SCALER_TARGET_ADMIN_NAMESPACE": "keda",
    "KEDA_HTTP_SCALER_TARGET_ADMIN_SERVICE": "interceptor-admin",
    "KEDA_HTTP_SCALER_TARGET_ADMIN_DEPLOYMENT": "interceptor",
    "KEDA_HTTP_SCALER_TARGET_ADMIN_PORT": "9090",
}


def test_defaults_applied():
    cfg = parse_config(dict(REQUIRED))
    assert cfg.grpc_port == 8080
    assert cfg.health_port == 8090
    assert cfg.target_pending_requests == 100
    assert cfg.config_map_cache_rsync_period == timedelta(minutes=60)
    assert cfg.deployment_cache_rsync_period == timedelta(minutes=60)
    assert cfg.queue_tick_duration == timedelta(milliseconds=500)


def test_required_values_passed_through():
    cfg = parse_config(dict(REQUIRED))
    assert cfg == ScalerConfig(
        target_namespace="keda",
        target_service="interceptor-admin",
        target_deployment="interceptor",
        target_port=9090,
    )


def test_overrides():
    env = dict(REQUIRED)
    env["KEDA_HTTP_SCALER_PORT"] = "7000"
    env["KEDA_HTTP_QUEUE_TICK_DURATION"] = "2s"
    env["KEDA_HTTP_SCALER_TARGET_PENDING_REQUESTS"] = "42"
    cfg = parse_config(env)
    assert cfg.grpc_port == 7000
    assert cfg.queue_tick_duration == timedelta(seconds=2)
    assert cfg.target_pending_requests == 42


@pytest.mark.parametrize("missing", sorted(REQUIRED))
def test_missing_required(missing):
    env = {k: v for k, v in REQUIRED.items() if k != missing}
    with pytest.raises(ConfigError):
        parse_config(env)


def test_empty_required_string_allowed():
    env = dict(REQUIRED)
    env["KEDA_HTTP_SCALER_TARGET_ADMIN_SERVICE"] = ""
    assert parse_config(env).target_service == ""


@pytest.mark.parametrize("value", ["abc", "", "12.5", "99999999999999999999"])
def test_invalid_int(value):
    env = dict(REQUIRED)
    env["KEDA_HTTP_SCALER_TARGET_ADMIN_PORT"] = value
    with pytest.raises(ConfigError):
        parse_config(env)


def test_invalid_duration_in_env():
    env = dict(REQUIRED)
    env["KEDA_HTTP_QUEUE_TICK_DURATION"] = "soon"
    with pytest.raises(ConfigError):
        parse_config(env)


def test_parse_duration_defaults():
    assert parse_duration("60m") == timedelta(minutes=60)
    assert parse_duration("500ms") == timedelta(milliseconds=500)
    assert parse_duration("0") == timedelta(0)


def test_parse_duration_compound_and_sign():
    assert parse_duration("1h30m") == timedelta(hours=1, minutes=30)
    assert parse_duration("-1.5h") == -timedelta(hours=1.5)
    assert parse_duration("+2s") == parse_duration("2s")


@pytest.mark.parametrize("seconds", [1, 7, 59, 3600])
def test_parse_duration_seconds_round_trip(seconds):
    assert parse_duration(f"{seconds}s") == timedelta(seconds=seconds)
    assert parse_duration(f"{seconds}000ms") == timedelta(seconds=seconds)


@pytest.mark.parametrize("text", ["", "5", "abc", "1x", ".s", "-", "1.2.3s"])
def test_parse_duration_invalid(text):
    with pytest.raises(ConfigError):
        parse_duration(text)