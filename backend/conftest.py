# Ensure 'backend/' is on sys.path so 'import app.*' works
# whether pytest is started from the repository root or from backend/.
import os
from pathlib import Path
import sys

_BACKEND_DIR = Path(__file__).resolve().parent
if str(_BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(_BACKEND_DIR))

# Settings read this at import time; it must be set before any app import.
os.environ.setdefault("is_testing", "true")
os.environ.setdefault("environment", "test")
