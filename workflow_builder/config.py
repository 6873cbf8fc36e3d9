"""Configuration management for the Workflow Builder service."""

import os
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator
from enum import Enum

from .core.exceptions import ConfigurationError
from .models.core import CanvasBounds


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AppConfig(BaseModel):
    """Application configuration settings."""

    # Application settings
    app_name: str = Field(default="Workflow Builder", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    reload: bool = Field(default=False, description="Enable auto-reload in development")

    # Canvas settings
    canvas_width: float = Field(default=800.0, description="Canvas width in pixels")
    canvas_height: float = Field(default=500.0, description="Canvas height in pixels")
    node_width: float = Field(default=120.0, description="Rendered node width in pixels")
    node_height: float = Field(default=80.0, description="Rendered node height in pixels")

    # Execution engine settings
    execution_engine_url: str = Field(
        default="http://localhost:5000/api/agents/workflow_builder/run",
        description="Endpoint of the external workflow execution engine"
    )
    execution_timeout: float = Field(
        default=120.0,
        description="Seconds to wait for the execution engine to respond"
    )

    # Session settings
    max_sessions: int = Field(default=100, description="Maximum number of open editor sessions")

    # Logging settings
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: Optional[str] = Field(
        default=None,
        description="Text log format; may use %(context)s for request and session fields"
    )
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_max_size: int = Field(default=10485760, description="Maximum log file size in bytes")  # 10MB
    log_backup_count: int = Field(default=5, description="Number of log backup files to keep")
    structured_logging: bool = Field(default=False, description="Emit JSON log records")

    # Performance monitoring settings
    slow_request_threshold: float = Field(
        default=5.0,
        description="Slow request threshold in seconds"
    )
    enable_performance_monitoring: bool = Field(
        default=True,
        description="Enable request logging and timing middleware"
    )

    # Security settings
    cors_origins: list = Field(
        default=["*"],
        description="CORS allowed origins"
    )
    cors_methods: list = Field(
        default=["GET", "POST", "PATCH", "DELETE"],
        description="CORS allowed methods"
    )

    @field_validator('port')
    @classmethod
    def validate_port(cls, v):
        """Validate port number."""
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator('canvas_width', 'canvas_height', 'node_width', 'node_height')
    @classmethod
    def validate_dimensions(cls, v):
        """Validate canvas and node dimensions."""
        if v <= 0:
            raise ValueError("Dimensions must be positive")
        return v

    @field_validator('execution_timeout')
    @classmethod
    def validate_timeout(cls, v):
        """Validate timeout values."""
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v

    @field_validator('max_sessions')
    @classmethod
    def validate_max_sessions(cls, v):
        if v < 1:
            raise ValueError("Maximum sessions must be at least 1")
        return v

    @field_validator('execution_engine_url')
    @classmethod
    def validate_engine_url(cls, v):
        """Validate execution engine URL format."""
        if not v:
            raise ValueError("Execution engine URL cannot be empty")
        scheme = v.split('://')[0].lower()
        if scheme not in ('http', 'https'):
            raise ValueError(f"Unsupported execution engine scheme: {scheme}. Supported: ['http', 'https']")
        return v

    @model_validator(mode='after')
    def validate_node_fits_canvas(self):
        """Ensure a node fits inside the canvas."""
        if self.node_width > self.canvas_width or self.node_height > self.canvas_height:
            raise ValueError("Node dimensions must not exceed canvas dimensions")
        return self

    @property
    def canvas_bounds(self) -> CanvasBounds:
        """Canvas bounds used to clamp node positions."""
        return CanvasBounds(
            width=self.canvas_width,
            height=self.canvas_height,
            node_width=self.node_width,
            node_height=self.node_height
        )

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return not self.debug and not self.reload

    def get_uvicorn_config(self) -> Dict[str, Any]:
        """Get Uvicorn server configuration."""
        return {
            "host": self.host,
            "port": self.port,
            "reload": self.reload,
            "log_level": self.log_level.value.lower(),
            "access_log": self.debug
        }

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Create configuration from environment variables."""
        def get_env(key: str, default=None, type_func=str):
            """Get environment variable with type conversion."""
            value = os.getenv(f"WORKFLOW_BUILDER_{key}")
            if value is None:
                return default
            if type_func == bool:
                return str(value).lower() in ('true', '1', 'yes', 'on')
            elif type_func == list:
                return value.split(',') if value else default
            return type_func(value)

        return cls(
            app_name=get_env("APP_NAME", "Workflow Builder"),
            app_version=get_env("APP_VERSION", "1.0.0"),
            debug=get_env("DEBUG", False, bool),
            host=get_env("HOST", "0.0.0.0"),
            port=get_env("PORT", 8000, int),
            reload=get_env("RELOAD", False, bool),
            canvas_width=get_env("CANVAS_WIDTH", 800.0, float),
            canvas_height=get_env("CANVAS_HEIGHT", 500.0, float),
            node_width=get_env("NODE_WIDTH", 120.0, float),
            node_height=get_env("NODE_HEIGHT", 80.0, float),
            execution_engine_url=get_env(
                "EXECUTION_ENGINE_URL", "http://localhost:5000/api/agents/workflow_builder/run"
            ),
            execution_timeout=get_env("EXECUTION_TIMEOUT", 120.0, float),
            max_sessions=get_env("MAX_SESSIONS", 100, int),
            log_level=LogLevel(get_env("LOG_LEVEL", "INFO").upper()),
            log_format=get_env("LOG_FORMAT", None),
            log_file=get_env("LOG_FILE", None),
            log_max_size=get_env("LOG_MAX_SIZE", 10485760, int),
            log_backup_count=get_env("LOG_BACKUP_COUNT", 5, int),
            structured_logging=get_env("STRUCTURED_LOGGING", False, bool),
            slow_request_threshold=get_env("SLOW_REQUEST_THRESHOLD", 5.0, float),
            enable_performance_monitoring=get_env("ENABLE_PERFORMANCE_MONITORING", True, bool),
            cors_origins=get_env("CORS_ORIGINS", ["*"], list),
            cors_methods=get_env("CORS_METHODS", ["GET", "POST", "PATCH", "DELETE"], list)
        )


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def load_config(config_file: Optional[str] = None) -> AppConfig:
    """Load configuration from a .env file and environment variables."""
    global _config

    from dotenv import load_dotenv
    if config_file and os.path.exists(config_file):
        load_dotenv(config_file)
    elif os.path.exists('.env'):
        load_dotenv('.env')

    _config = AppConfig.from_env()

    return _config


def reset_config():
    """Reset the global configuration instance (mainly for testing)."""
    global _config
    _config = None


def validate_config(config: AppConfig) -> None:
    """Validate configuration settings that depend on the environment."""
    errors = []

    if config.log_file:
        log_dir = os.path.dirname(config.log_file)
        if log_dir and not os.path.exists(log_dir):
            try:
                os.makedirs(log_dir, exist_ok=True)
            except OSError as e:
                errors.append(f"Cannot create log directory {log_dir}: {e}")

    if config.max_sessions > 10000:
        errors.append("Session limit above 10000 is not supported")

    if errors:
        raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")


# Environment-specific configurations
def get_development_config() -> AppConfig:
    """Get development configuration."""
    return AppConfig(
        debug=True,
        reload=True,
        log_level=LogLevel.DEBUG,
        enable_performance_monitoring=True
    )


def get_production_config() -> AppConfig:
    """Get production configuration."""
    return AppConfig(
        debug=False,
        reload=False,
        log_level=LogLevel.INFO,
        structured_logging=True,
        enable_performance_monitoring=True,
        cors_origins=[]  # Restrict CORS in production
    )


def get_testing_config() -> AppConfig:
    """Get testing configuration."""
    return AppConfig(
        debug=True,
        log_level=LogLevel.WARNING,
        execution_engine_url="http://engine.test/run",
        execution_timeout=5.0,
        max_sessions=10
    )
