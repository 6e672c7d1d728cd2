"""Path configuration for the backend."""
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=BASE_DIR / ".env")

# Directories
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))
MODELS_DIR = BASE_DIR / "models"

# Default artefact paths (overridable per concern)
DEFAULT_DATABASE_PATH = DATA_DIR / "gekkolab.db"
DEFAULT_CAPTURE_DIR = DATA_DIR / "motion-captures"
DEFAULT_DETECTOR_MODEL_PATH = MODELS_DIR / "gekko_detector.onnx"
