"""
Service layer exceptions.
"""


class ServiceError(Exception):
    """Base exception for request/cache layer errors."""

    def __init__(self, message: str, namespace: str | None = None):
        self.namespace = namespace
        super().__init__(message)


class ConfigurationError(ServiceError):
    """Cache layer was used before it was configured. Never retried."""

    pass


class NamespaceNotRegisteredError(ConfigurationError):
    """Namespace was used before register_namespace()."""

    def __init__(self, namespace: str):
        super().__init__(
            f"Cache namespace '{namespace}' is not registered",
            namespace=namespace,
        )


class CacheError(ServiceError):
    """Cache operation failed."""

    pass


class NetworkError(ServiceError):
    """Provider could not be reached."""

    pass


class RequestTimeoutError(NetworkError):
    """Request timed out."""

    def __init__(self, namespace: str | None, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Request for '{namespace}' timed out after {timeout}s",
            namespace=namespace,
        )


class RateLimitError(ServiceError):
    """Rate limit exceeded."""

    def __init__(self, namespace: str | None = None, retry_after: float | None = None):
        self.retry_after = retry_after
        self.status = 429
        msg = f"Rate limit exceeded for '{namespace}'"
        if retry_after:
            msg += f", retry after {retry_after}s"
        super().__init__(msg, namespace=namespace)


class ServiceUnavailableError(ServiceError):
    """Provider is temporarily unavailable (502/503/504)."""

    def __init__(
        self,
        message: str,
        namespace: str | None = None,
        status: int | None = None,
    ):
        self.status = status
        super().__init__(message, namespace=namespace)


class ClientError(ServiceError):
    """Malformed request or unparseable response. Never retried."""

    def __init__(
        self,
        message: str,
        namespace: str | None = None,
        status: int | None = None,
    ):
        self.status = status
        super().__init__(message, namespace=namespace)
