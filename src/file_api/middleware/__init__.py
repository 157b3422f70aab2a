"""Pipeline middleware."""

from file_api.middleware.authentication import (
    Authenticate,
    RequireOwner,
    TokenValidation,
    extract_bearer_token,
    optional_auth,
    path_param,
)
from file_api.middleware.caching import ResponseCache, ResponseCacheStore, build_cache_key
from file_api.middleware.cors import Cors, CorsConfig
from file_api.middleware.errors import HandleErrors, format_error
from file_api.middleware.metrics import MetricKind, MetricsRegistry, RequestMetrics
from file_api.middleware.request_logging import RequestLogging
from file_api.middleware.throttling import (
    RateLimit,
    RateLimitDecision,
    TokenBucketStore,
    default_key_func,
    ip_key_func,
    user_key_func,
)
from file_api.middleware.validation import (
    FieldSpec,
    SchemaResult,
    ValidateRequest,
    rules,
    validate_schema,
)

__all__ = [
    "Authenticate",
    "Cors",
    "CorsConfig",
    "FieldSpec",
    "HandleErrors",
    "MetricKind",
    "MetricsRegistry",
    "RateLimit",
    "RateLimitDecision",
    "RequestLogging",
    "RequestMetrics",
    "RequireOwner",
    "ResponseCache",
    "ResponseCacheStore",
    "SchemaResult",
    "TokenBucketStore",
    "TokenValidation",
    "ValidateRequest",
    "build_cache_key",
    "default_key_func",
    "extract_bearer_token",
    "format_error",
    "ip_key_func",
    "optional_auth",
    "path_param",
    "rules",
    "user_key_func",
    "validate_schema",
]
