"""python -m bonafide_portal"""
import uvicorn

from bonafide_portal.core.config import get_settings

settings = get_settings()


if __name__ == "__main__":
    uvicorn.run(
        "bonafide_portal.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
