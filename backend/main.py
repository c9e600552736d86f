"""Survey tool with Google Forms import and AI follow-up interviews: FastAPI backend."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings, ENV_PATH
from routers import forms, interview, surveys

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Survey Interview API",
    description="Fixed-choice surveys with Google Forms import and an AI follow-up interview.",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(forms.router)
app.include_router(surveys.router)
app.include_router(interview.router)


@app.on_event("startup")
def startup_diagnostics():
    logger.info("=" * 50)
    logger.info("Survey Interview API starting up")
    logger.info("Env file path: %s", ENV_PATH)
    logger.info("Env file exists: %s", ENV_PATH.exists())
    key = settings.api_key
    if key:
        logger.info("OPENAI_API_KEY loaded: YES (…%s)", key[-4:])
    else:
        logger.warning("OPENAI_API_KEY loaded: NO, interviews will NOT work!")
        logger.warning("Set OPENAI_API_KEY in %s", ENV_PATH)
    logger.info("Models: interview=%s, analysis=%s, max turns=%d",
                settings.openai_interview_model, settings.openai_analysis_model,
                settings.interview_max_turns)
    logger.info("Data dir: %s", settings.data_dir)
    logger.info("Form fetch timeout: %.1fs", settings.form_fetch_timeout)
    logger.info("=" * 50)


@app.get("/")
def root():
    return {"app": "Survey Interview", "status": "ok"}


@app.get("/api/health")
def health():
    return {
        "status": "healthy",
        "api_key_configured": bool(settings.api_key),
        "env_path": str(ENV_PATH),
        "data_dir": str(settings.data_dir),
    }
