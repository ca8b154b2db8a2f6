from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from subscriber.app.constants import (
    DEFAULT_CHANNEL_CAPACITY,
    DEFAULT_DELETE_FLUSH_INTERVAL_SECONDS,
    DEFAULT_DELETE_MAX_ATTEMPTS,
    DEFAULT_DELETE_RETRY_SECONDS,
    DEFAULT_RECEIVE_RETRY_SECONDS,
    DEFAULT_RECEIVE_WAIT_SECONDS,
    DEFAULT_VISIBILITY_TIMEOUT_SECONDS,
    MAX_RECEIVE_MESSAGES,
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    queue_name: str = Field(..., validation_alias="QUEUE_NAME")
    queue_backend: str = Field("sqs", validation_alias="QUEUE_BACKEND")
    archive_backend: str = Field("s3", validation_alias="ARCHIVE_BACKEND")

    aws_region: str | None = Field(None, validation_alias="AWS_REGION")
    # Set for LocalStack or other SQS/S3 compatible endpoints.
    aws_endpoint_url: str | None = Field(None, validation_alias="AWS_ENDPOINT_URL")

    delete_flush_interval_seconds: float = Field(
        DEFAULT_DELETE_FLUSH_INTERVAL_SECONDS, validation_alias="DELETE_FLUSH_INTERVAL_SECONDS"
    )
    delete_max_attempts: int = Field(DEFAULT_DELETE_MAX_ATTEMPTS, validation_alias="DELETE_MAX_ATTEMPTS")
    delete_retry_seconds: float = Field(DEFAULT_DELETE_RETRY_SECONDS, validation_alias="DELETE_RETRY_SECONDS")
    receive_max_messages: int = Field(MAX_RECEIVE_MESSAGES, validation_alias="RECEIVE_MAX_MESSAGES")
    receive_wait_seconds: int = Field(DEFAULT_RECEIVE_WAIT_SECONDS, validation_alias="RECEIVE_WAIT_SECONDS")
    visibility_timeout_seconds: int = Field(
        DEFAULT_VISIBILITY_TIMEOUT_SECONDS, validation_alias="VISIBILITY_TIMEOUT_SECONDS"
    )
    receive_retry_seconds: float = Field(DEFAULT_RECEIVE_RETRY_SECONDS, validation_alias="RECEIVE_RETRY_SECONDS")
    channel_capacity: int = Field(DEFAULT_CHANNEL_CAPACITY, validation_alias="CHANNEL_CAPACITY")
    handler_timeout_seconds: float | None = Field(None, validation_alias="HANDLER_TIMEOUT_SECONDS")

    # Startup queue resolution retries.
    initial_backoff_seconds: float = Field(1.0, validation_alias="INITIAL_BACKOFF_SECONDS")
    max_backoff_seconds: float = Field(30.0, validation_alias="MAX_BACKOFF_SECONDS")
    backoff_multiplier: float = Field(2.0, validation_alias="BACKOFF_MULTIPLIER")
    max_connection_attempts: int = Field(5, validation_alias="MAX_CONNECTION_ATTEMPTS")

    event_handler: str = Field(
        "subscriber.app.application.handlers:log_event", validation_alias="EVENT_HANDLER"
    )
    # Comma separated "module:Class" paths of DomainEvent subclasses.
    event_types: str = Field("", validation_alias="EVENT_TYPES")

    replay_bucket: str = Field("", validation_alias="REPLAY_BUCKET")
    replay_prefix: str = Field("", validation_alias="REPLAY_PREFIX")

    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(False, validation_alias="LOG_JSON")

    @field_validator("handler_timeout_seconds", mode="before")
    @classmethod
    def _blank_timeout_is_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def event_type_paths(self) -> list[str]:
        return [part.strip() for part in self.event_types.split(",") if part.strip()]
