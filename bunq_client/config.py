"""
bunq client configuration.
"""

from dataclasses import dataclass

from bunq_client.exceptions import ConfigurationError, ErrorCode

SANDBOX = "SANDBOX"
PRODUCTION = "PRODUCTION"


@dataclass(frozen=True, kw_only=True)
class BunqClientConfig:
    """
    Attributes:
        sandbox_api_url: Base URL for the bunq sandbox API.
        production_api_url: Base URL for the bunq production API.
        credentials_api_url: Base URL for credential password-IP requests.
        timeout: Request timeout in seconds.
        user_agent: User-Agent header value.
        language: Value of the X-Bunq-Language header.
        region: Value of the X-Bunq-Region header.
        geolocation: Value of the X-Bunq-Geolocation header.
        key_size: RSA modulus size for generated client keys.
        storage_key_prefix: Prefix for every key written to storage.
        rate_limit_window: Length of a rate limit window in seconds.
        rate_limit_max_concurrent: Maximum in-flight calls per (path, method).
        get_requests_per_window: Request budget per window for GET.
        post_requests_per_window: Request budget per window for POST.
        put_requests_per_window: Request budget per window for PUT.
        delete_requests_per_window: Request budget per window for DELETE.
        ci_env_var: Environment variable that disables session self-renewal
            when set to "true".
    """

    sandbox_api_url: str = "https://public-api.sandbox.bunq.com/v1"
    production_api_url: str = "https://api.bunq.com/v1"
    credentials_api_url: str = "https://api.tinker.bunq.com/v1"
    timeout: float = 30.0
    user_agent: str = "bunq-session-client/0.1"
    language: str = "en_US"
    region: str = "nl_NL"
    geolocation: str = "0 0 0 0 000"
    key_size: int = 2048
    storage_key_prefix: str = "BUNQJSCLIENT"
    rate_limit_window: float = 3.0
    rate_limit_max_concurrent: int = 1
    get_requests_per_window: int = 3
    post_requests_per_window: int = 5
    put_requests_per_window: int = 2
    delete_requests_per_window: int = 3
    ci_env_var: str = "ENV_CI"

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)
        if self.key_size < 2048:
            msg = "key_size must be at least 2048"
            raise ValueError(msg)
        if self.rate_limit_window <= 0:
            msg = "rate_limit_window must be positive"
            raise ValueError(msg)
        if self.rate_limit_max_concurrent <= 0:
            msg = "rate_limit_max_concurrent must be positive"
            raise ValueError(msg)
        budgets = (
            self.get_requests_per_window,
            self.post_requests_per_window,
            self.put_requests_per_window,
            self.delete_requests_per_window,
        )
        if any(budget <= 0 for budget in budgets):
            msg = "requests per window must be positive"
            raise ValueError(msg)

    def api_url_for(self, environment: str) -> str:
        """
        Resolve the API base URL for an environment name.

        Raises:
            ConfigurationError: If the environment is not SANDBOX or PRODUCTION.
        """
        if environment == SANDBOX:
            return self.sandbox_api_url
        if environment == PRODUCTION:
            return self.production_api_url
        msg = f"Unknown bunq environment: {environment}"
        raise ConfigurationError(
            msg, error_code=ErrorCode.UNKNOWN_ENVIRONMENT, environment=environment
        )

    def requests_per_window(self, method: str) -> int:
        """Request budget per rate limit window for an HTTP method."""
        budgets = {
            "GET": self.get_requests_per_window,
            "POST": self.post_requests_per_window,
            "PUT": self.put_requests_per_window,
            "DELETE": self.delete_requests_per_window,
        }
        return budgets.get(method.upper(), self.get_requests_per_window)
