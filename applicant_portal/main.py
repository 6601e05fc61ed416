# applicant_portal/main.py
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from applicant_portal.config import settings
from applicant_portal.db.session import init_db
from applicant_portal.api.endpoints import applications, attendance, review

def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="Applicant Portal API", version="1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    # Routers (versioned)
    app.include_router(applications.router, prefix=settings.API_V1_STR)
    app.include_router(attendance.router, prefix=settings.API_V1_STR)
    app.include_router(review.router, prefix=settings.API_V1_STR)

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.on_event("startup")
    def on_startup():
        init_db()

    return app

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("applicant_portal.main:app", host="0.0.0.0", port=8000)
