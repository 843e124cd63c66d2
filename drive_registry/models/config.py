"""Configuration models for the Drive registry."""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DRIVE_READONLY_SCOPE = "https://www.googleapis.com/auth/drive.readonly"
SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"

# Hard execution ceiling of the scheduler that invokes a run.
PLATFORM_CEILING_SECONDS = 360


class DriveConfig(BaseModel):
    """Configuration for the Google Drive connection."""

    root_folder_id: str = Field(default=..., min_length=1, description="Id of the tracked root folder")
    credentials_file: str | None = Field(
        default=None, description="Path to a service-account JSON key file"
    )
    scopes: list[str] = Field(
        default_factory=lambda: [DRIVE_READONLY_SCOPE, SHEETS_SCOPE],
        description="OAuth scopes requested for the service account",
    )
    children_page_size: int = Field(
        default=1000, ge=1, le=1000, description="Page size for folder listings"
    )
    changes_page_size: int = Field(
        default=1000, ge=1, le=1000, description="Page size for change feed requests"
    )


class SheetsConfig(BaseModel):
    """Configuration for the spreadsheet output sink."""

    spreadsheet_id: str | None = Field(default=None, description="Target spreadsheet id")
    entity_tab: str = Field(default="Files", description="Entity registry tab")
    folder_tab: str = Field(default="Folders", description="Folder registry tab")
    change_tab: str = Field(default="ChangeLog", description="Change log tab")
    error_tab: str = Field(default="Errors", description="Error log tab")
    status_range: str = Field(default="Status!A1", description="Cell holding the status indicator")


class CheckpointConfig(BaseModel):
    """Configuration for the checkpoint store."""

    path: str = Field(default="./state/checkpoint.json", description="JSON checkpoint file")


class RunConfig(BaseModel):
    """Limits applied to a single time-bounded run."""

    time_budget_seconds: float = Field(
        default=300.0, gt=0, description="Cooperative deadline, below the platform ceiling"
    )
    max_attempts: int = Field(default=5, ge=1, le=10, description="Attempts per remote call")
    lag_wait_seconds: float = Field(
        default=5.0, ge=0, description="Wait before retrying an unchanged fresh cursor"
    )
    max_lag_waits: int = Field(
        default=1, ge=1, description="Number of replication-lag waits per recovery"
    )
    max_cursor_recoveries: int = Field(
        default=3, ge=1, description="Cursor recoveries allowed in one sync run"
    )


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        description="If True, output JSON logs. If False, use console format.",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional path to log file. If None, logs only to stdout.",
    )


class AppConfig(BaseSettings):
    """Main application configuration.

    This class uses pydantic-settings to load configuration from environment
    variables with the APP_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    drive: DriveConfig
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)
    checkpoint: CheckpointConfig = Field(default_factory=CheckpointConfig)
    run: RunConfig = Field(default_factory=RunConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
