import pytest

from bunq_client.config import BunqClientConfig
from bunq_client.exceptions import ConfigurationError, ErrorCode


def test_api_url_for_known_environments() -> None:
    config = BunqClientConfig()

    assert config.api_url_for("SANDBOX") == "https://public-api.sandbox.bunq.com/v1"
    assert config.api_url_for("PRODUCTION") == "https://api.bunq.com/v1"


def test_api_url_for_unknown_environment_raises() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        BunqClientConfig().api_url_for("STAGING")

    assert exc_info.value.error_code is ErrorCode.UNKNOWN_ENVIRONMENT


def test_requests_per_window_by_method() -> None:
    config = BunqClientConfig()

    assert config.requests_per_window("get") == 3
    assert config.requests_per_window("POST") == 5
    assert config.requests_per_window("PUT") == 2
    assert config.requests_per_window("PATCH") == 3


@pytest.mark.parametrize(
    ("field", "value", "message"),
    [
        ("timeout", 0, "timeout must be positive"),
        ("key_size", 1024, "key_size must be at least 2048"),
        ("rate_limit_window", 0, "rate_limit_window must be positive"),
        ("rate_limit_max_concurrent", 0, "rate_limit_max_concurrent must be positive"),
        ("post_requests_per_window", 0, "requests per window must be positive"),
    ],
)
def test_invalid_config_raises(field: str, value: float, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        BunqClientConfig(**{field: value})
