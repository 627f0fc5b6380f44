"""Configuration, logging setup and client wiring."""

import json
import logging
import os
import pathlib
import sys
from collections.abc import Mapping

import httpx
import pydantic
import structlog

from .errors import ConfigError
from .graphql import DEFAULT_BASE_URL, GraphQLTransport
from .http import DEFAULT_TIMEOUT
from .review_slots import ReviewSlotProjector
from .token import DEFAULT_AUTH_URL, Credentials, TokenManager

CONFIG_ENV_VAR = "S21_CLIENT_CONFIG_PATH"
logger = structlog.get_logger(__name__)

# Environment variable -> ClientConfig field
ENV_FIELDS = {
    "S21_LOGIN": "login",
    "S21_PASSWORD": "password",
    "S21_SCHOOL_ID": "school_id",
    "S21_USER_ROLE": "user_role",
    "S21_EDU_PRODUCT_ID": "edu_product_id",
    "S21_EDU_ORG_UNIT_ID": "edu_org_unit_id",
    "S21_TIMEOUT": "timeout",
    "S21_DEBUG": "debug",
    "S21_LOG_LEVEL": "log_level",
}


class ClientConfig(pydantic.BaseModel):
    """Configuration for the 21-school API client.

    ``transport`` is an in-process override (e.g. ``httpx.MockTransport``);
    it cannot come from JSON or the environment and is never serialized.
    """

    model_config = pydantic.ConfigDict(arbitrary_types_allowed=True)

    base_url: str = pydantic.Field(
        DEFAULT_BASE_URL,
        description="Platform base URL",
    )
    auth_url: str = pydantic.Field(
        DEFAULT_AUTH_URL,
        description="Auth service base URL",
    )
    login: str | None = pydantic.Field(None, description="Account login")
    password: str | None = pydantic.Field(
        None,
        description="Account password",
        repr=False,
    )
    school_id: str | None = pydantic.Field(None, description="schoolid header")
    user_role: str | None = pydantic.Field(None, description="userrole header")
    edu_product_id: str | None = pydantic.Field(
        None,
        description="x-edu-product-id header",
    )
    edu_org_unit_id: str | None = pydantic.Field(
        None,
        description="x-edu-org-unit-id header",
    )
    timeout: float = pydantic.Field(
        DEFAULT_TIMEOUT,
        description="Request timeout in seconds",
        gt=0,
    )
    debug: bool = pydantic.Field(False, description="Trace request/response details")
    validate_slot_windows: bool = pydantic.Field(
        False,
        description="Reject slot windows whose end is not after their start",
    )
    log_level: str = pydantic.Field("INFO", description="Logging level")
    transport: httpx.BaseTransport | None = pydantic.Field(
        None,
        description="httpx transport shared by the auth and GraphQL clients",
        exclude=True,
        repr=False,
    )

    @property
    def credentials(self) -> Credentials | None:
        if self.login and self.password:
            return Credentials(login=self.login, password=self.password)
        return None


def configure_logging(log_level_name: str) -> None:
    """Configure structlog for logfmt output on stderr.

    stdout is left to the calling program.
    """
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg"),
                drop_missing=True,
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def load_config(config_path: str) -> ClientConfig:
    """Load configuration from a JSON object file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigError: If the file is not a JSON object.
        pydantic.ValidationError: If a field has an invalid value.
    """
    path = pathlib.Path(config_path)
    if not path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        msg = f"Configuration file {config_path} is not valid JSON: {exc}"
        raise ConfigError(msg) from exc
    if not isinstance(data, dict):
        msg = f"Configuration file {config_path} must hold a JSON object"
        raise ConfigError(msg)

    return ClientConfig(**data)


def config_from_env(environ: Mapping[str, str] | None = None) -> ClientConfig:
    """Build configuration from ``S21_*`` environment variables.

    Unset or empty variables fall back to the field defaults.
    """
    environ = os.environ if environ is None else environ
    data = {
        field: environ[name]
        for name, field in ENV_FIELDS.items()
        if environ.get(name)
    }
    return ClientConfig(**data)


def create_client(config: ClientConfig) -> ReviewSlotProjector:
    """Wire token manager, transport and projector from validated config."""
    tokens = TokenManager(
        credentials=config.credentials,
        auth_url=config.auth_url,
        timeout=config.timeout,
        transport=config.transport,
    )
    graphql = GraphQLTransport(
        tokens=tokens,
        base_url=config.base_url,
        timeout=config.timeout,
        school_id=config.school_id,
        user_role=config.user_role,
        edu_product_id=config.edu_product_id,
        edu_org_unit_id=config.edu_org_unit_id,
        debug=config.debug,
        transport=config.transport,
    )
    logger.info(
        "Created client",
        base_url=config.base_url,
        has_credentials=tokens.has_credentials,
    )
    return ReviewSlotProjector(
        graphql,
        validate_slot_windows=config.validate_slot_windows,
    )


def create_client_from_env(config_path: str | None = None) -> ReviewSlotProjector:
    """Create a client from a JSON file if given, else from ``S21_*`` variables."""
    resolved_path = config_path or os.environ.get(CONFIG_ENV_VAR)
    config = load_config(resolved_path) if resolved_path else config_from_env()
    configure_logging(config.log_level)
    return create_client(config)
