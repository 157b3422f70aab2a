"""File API - composable request pipeline for a serverless file service."""

from file_api.adapters import as_endpoint, as_lambda_handler
from file_api.app import Stores, create_app
from file_api.component import Component
from file_api.composition import (
    PipelineOptions,
    authenticated_pipeline,
    compose,
    create_authenticated_handler,
    create_handler,
    standard_pipeline,
)
from file_api.config import Settings, get_settings
from file_api.context import Identity, RequestContext
from file_api.exceptions import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DatabaseError,
    ErrorKind,
    ExternalServiceError,
    FileProcessingError,
    InternalError,
    NotFoundError,
    PipelineError,
    RateLimitExceeded,
    ValidationError,
)
from file_api.multipart import MultipartData, MultipartFile, parse_multipart
from file_api.response import (
    Response,
    created_response,
    error_response,
    no_content_response,
    paginated_response,
    success_response,
)
from file_api.sweeper import PeriodicSweeper

__all__ = [
    "AppError",
    "AuthenticationError",
    "AuthorizationError",
    "Component",
    "ConflictError",
    "DatabaseError",
    "ErrorKind",
    "ExternalServiceError",
    "FileProcessingError",
    "Identity",
    "InternalError",
    "MultipartData",
    "MultipartFile",
    "NotFoundError",
    "PeriodicSweeper",
    "PipelineError",
    "PipelineOptions",
    "RateLimitExceeded",
    "RequestContext",
    "Response",
    "Settings",
    "Stores",
    "ValidationError",
    "as_endpoint",
    "as_lambda_handler",
    "authenticated_pipeline",
    "compose",
    "create_app",
    "create_authenticated_handler",
    "create_handler",
    "created_response",
    "error_response",
    "get_settings",
    "no_content_response",
    "paginated_response",
    "parse_multipart",
    "standard_pipeline",
    "success_response",
]
