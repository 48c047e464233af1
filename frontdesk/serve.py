import uvicorn
from frontdesk.core.config import settings


def main():
    """Run the API under uvicorn; auto-reload only in local."""
    uvicorn.run(
        "frontdesk.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.ENV == "local",
        log_config=None,
    )


if __name__ == "__main__":
    main()
