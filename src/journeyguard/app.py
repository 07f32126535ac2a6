from fastapi import FastAPI

from .api.routes import router as api_router
from .telemetry import init_telemetry, shutdown_telemetry


def create_app() -> FastAPI:
    app = FastAPI(title="JourneyGuard API", version="0.1.0")
    app.include_router(api_router)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    init_telemetry(app)
    app.add_event_handler("shutdown", shutdown_telemetry)
    return app


app = create_app()
