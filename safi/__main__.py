import uvicorn

from safi.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "safi.api.server:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.env == "development",
        log_level="info",
        access_log=True,
    )
