"""Application factory for creating FastAPI instances."""

from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import AppConfig, get_config, validate_config
from .core.exceptions import WorkflowBuilderError
from .core.execution_client import ExecutionClient
from .core.logging import setup_logging
from .core.middleware import RequestContextMiddleware, workflow_builder_error_handler
from .core.node_registry import list_node_types
from .core.session_manager import SessionManager
from .api.endpoints import router, init_dependencies


class ApplicationState:
    """Container for application state and components."""

    def __init__(self):
        self.config: Optional[AppConfig] = None
        self.session_manager: Optional[SessionManager] = None
        self.execution_client: Optional[ExecutionClient] = None
        self.logger = None


# Global application state
app_state = ApplicationState()


def initialize_core_components(config: AppConfig,
                               execution_client: Optional[ExecutionClient] = None) -> tuple:
    """Initialize the session manager and the execution engine client."""
    session_manager = SessionManager(bounds=config.canvas_bounds, max_sessions=config.max_sessions)
    if execution_client is None:
        execution_client = ExecutionClient(config.execution_engine_url, timeout=config.execution_timeout)
    return session_manager, execution_client


def create_lifespan_handler(config: AppConfig):
    """Create application lifespan handler."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger = setup_logging(
            level=config.log_level.value,
            log_file=config.log_file,
            log_format=config.log_format,
            structured=config.structured_logging,
            max_size=config.log_max_size,
            backup_count=config.log_backup_count
        )
        app_state.logger = logger

        logger.info(f"Starting {config.app_name} v{config.app_version}")
        logger.info(f"Execution engine: {config.execution_engine_url} (timeout {config.execution_timeout}s)")
        logger.info(f"{len(list_node_types())} node types available in the palette")

        yield

        # Shutdown
        logger.info(f"Shutting down {config.app_name}")
        if app_state.session_manager is not None:
            app_state.session_manager.clear()
        if app_state.execution_client is not None:
            try:
                app_state.execution_client.close()
            except Exception as e:
                logger.error(f"Error closing execution client: {str(e)}")

    return lifespan


def create_app(config: Optional[AppConfig] = None,
               execution_client: Optional[ExecutionClient] = None) -> FastAPI:
    """
    Create and configure a FastAPI application instance.

    Args:
        config: Application configuration; loaded from the environment when omitted
        execution_client: Client used for execution requests; built from config when omitted

    Returns:
        FastAPI: Configured application
    """
    # Use provided config or load from environment
    if config is None:
        config = get_config()

    # Validate configuration
    validate_config(config)

    session_manager, execution_client = initialize_core_components(config, execution_client)

    app_state.config = config
    app_state.session_manager = session_manager
    app_state.execution_client = execution_client

    init_dependencies(session_manager=session_manager, execution_client=execution_client)

    # Create FastAPI application
    app = FastAPI(
        title=config.app_name,
        description="Visual editor backend for authoring, validating and executing agent workflows",
        version=config.app_version,
        debug=config.debug,
        lifespan=create_lifespan_handler(config)
    )

    # Add CORS middleware
    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=config.cors_methods,
            allow_headers=["*"],
            expose_headers=["Content-Disposition", "X-Request-ID"],
        )

    # Add request context middleware
    app.add_middleware(
        RequestContextMiddleware,
        slow_request_threshold=config.slow_request_threshold if config.enable_performance_monitoring else None
    )

    app.add_exception_handler(WorkflowBuilderError, workflow_builder_error_handler)

    # Include API router
    app.include_router(router)

    # Add health check endpoints
    add_health_endpoints(app, config)

    return app


def add_health_endpoints(app: FastAPI, config: AppConfig) -> None:
    """Add health check endpoints to the application."""

    @app.get("/")
    async def root():
        """Root endpoint for basic health check."""
        return {"message": f"{config.app_name} is running", "version": config.app_version}

    @app.get("/health")
    async def health_check():
        """Basic health check endpoint."""
        sessions = app_state.session_manager.list_sessions() if app_state.session_manager else []
        return {
            "status": "healthy",
            "service": config.app_name.lower().replace(" ", "-"),
            "version": config.app_version,
            "active_sessions": len(sessions),
            "execution_engine_url": config.execution_engine_url
        }
