"""Main application entry point."""

from wakeme.core.settings import get_settings
from wakeme.factory import create_app

settings = get_settings()
app = create_app(settings)

# For development server
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "wakeme.main:app",
        host="0.0.0.0",  # nosec B104 - Development server binding is intentional
        port=8000,
        reload=settings.app_env == "local",
        log_level=settings.log_level.lower(),
    )
