from fastapi import APIRouter, Request

APP_NAME = "raiderpal-api"
APP_VERSION = "0.1.0"

router = APIRouter()

@router.get("/health")
def health(request: Request):
    settings = request.app.state.settings
    return {"status": "ok", "store": "hosted" if settings.is_hosted else "sqlite", "cache": settings.cache_backend}

@router.get("/version")
def version():
    return {"app": APP_NAME, "version": APP_VERSION}
