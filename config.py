import os

# Base directories
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Paths
STATIC_DIR = os.path.join(BASE_DIR, "static")
LOG_FILE = os.path.join(BASE_DIR, "launch.log")
PROGRESS_DIR = os.getenv("PROGRESS_DIR", "")   # empty -> progress kept in the browser session only

# Local server
DEFAULT_HOST = os.getenv("HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))

# REST backend
BACKEND_URL = os.getenv("BACKEND_URL", "http://127.0.0.1:5000/api")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "15.0"))

# OpenAI
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
MODEL_NAME = "gpt-4o-mini"
VISION_MODEL_NAME = "gpt-4o"

# Proctoring
CAMERA_INDEX = int(os.getenv("CAMERA_INDEX", "0"))
JPEG_QUALITY = 80

# Exam session timing (seconds)
TICK_SECONDS = 1.0
AUTOSAVE_SECONDS = 5.0
PROCTOR_INTERVAL_SECONDS = 20.0

# Exam policy defaults (overridden by the backend exam config)
MAX_VIOLATIONS = 3
PASSING_SCORE = 70.0
