"""
Configuration management for the clip pipeline backend.
Loads configuration from environment variables and .env file.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
# Look for .env file in the project root or backend directory
BACKEND_DIR = Path(__file__).parent.parent
PROJECT_ROOT = BACKEND_DIR.parent
ENV_FILE = PROJECT_ROOT / ".env"

if ENV_FILE.exists():
    load_dotenv(ENV_FILE)
else:
    backend_env = BACKEND_DIR / ".env"
    if backend_env.exists():
        load_dotenv(backend_env)

# Base paths
DATA_DIR = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
DB_PATH = Path(os.getenv("DB_PATH", str(DATA_DIR / "clips.db")))
SCHEMA_PATH = BACKEND_DIR / "db" / "schema.sql"
WORK_DIR = Path(os.getenv("WORK_DIR", str(DATA_DIR / "work")))
DICTIONARY_PATH = os.getenv("DICTIONARY_PATH", None)  # JSON file; built-in table when unset

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Ollama configuration (AI gateway)
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "qwen2.5:14b")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.2"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "8192"))
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "300"))

# Transcript refinement
REFINE_CHUNK_SIZE = int(os.getenv("REFINE_CHUNK_SIZE", "500"))  # segments
REFINE_CHUNK_OVERLAP = int(os.getenv("REFINE_CHUNK_OVERLAP", "100"))
REFINE_CONTEXT_SENTENCES = int(os.getenv("REFINE_CONTEXT_SENTENCES", "3"))

# Clip policy
CLIP_MIN_DURATION_SECONDS = float(os.getenv("CLIP_MIN_DURATION_SECONDS", "20"))
CLIP_MAX_DURATION_SECONDS = float(os.getenv("CLIP_MAX_DURATION_SECONDS", "60"))

# Media cache
VIDEO_CACHE_TTL_DAYS = int(os.getenv("VIDEO_CACHE_TTL_DAYS", "7"))
CLIP_CACHE_TTL_HOURS = int(os.getenv("CLIP_CACHE_TTL_HOURS", "24"))
SIGNED_URL_TTL_MINUTES = int(os.getenv("SIGNED_URL_TTL_MINUTES", "60"))

# Background poller
ENABLE_POLLER = os.getenv("ENABLE_POLLER", "true").lower() == "true"
POLL_INTERVAL_SECONDS = float(os.getenv("POLL_INTERVAL_SECONDS", "10"))

# Google Drive (origin store)
GOOGLE_DRIVE_ACCESS_TOKEN = os.getenv("GOOGLE_DRIVE_ACCESS_TOKEN", None)
GOOGLE_DRIVE_OUTPUT_FOLDER_ID = os.getenv("GOOGLE_DRIVE_OUTPUT_FOLDER_ID", None)

# Google Cloud (temp storage + speech)
GOOGLE_CLOUD_PROJECT = os.getenv("GOOGLE_CLOUD_PROJECT", "")
VIDEO_TEMP_BUCKET = os.getenv("VIDEO_TEMP_BUCKET", f"{GOOGLE_CLOUD_PROJECT}-video-processor-temp")
SPEECH_ACCESS_TOKEN = os.getenv("SPEECH_ACCESS_TOKEN", GOOGLE_DRIVE_ACCESS_TOKEN)
SPEECH_LANGUAGE_CODE = os.getenv("SPEECH_LANGUAGE_CODE", "ja-JP")
SPEECH_LOCATION = os.getenv("SPEECH_LOCATION", "us-central1")
SPEECH_MODEL = os.getenv("SPEECH_MODEL", "chirp")
SPEECH_POLL_SECONDS = float(os.getenv("SPEECH_POLL_SECONDS", "15"))

# FFmpeg
FFMPEG_BIN = os.getenv("FFMPEG_BIN", "ffmpeg")

# API configuration
API_PREFIX = "/api"
# CORS origins can be comma-separated list in env var
CORS_ORIGINS_STR = os.getenv("CORS_ORIGINS", "http://localhost:3000")
CORS_ORIGINS = [origin.strip() for origin in CORS_ORIGINS_STR.split(",")]
