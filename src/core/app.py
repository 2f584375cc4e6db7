"""
Command Engine Application Environment

Loads environment variables from .env files at startup.
Imported before any module that reads configuration.
"""

from pathlib import Path

from dotenv import load_dotenv

# .env and .env.local live at the project root
project_root = Path(__file__).parent.parent.parent
env_file = project_root / ".env"
env_local_file = project_root / ".env.local"

# Load .env first, then .env.local (which can override)
if env_file.exists():
    load_dotenv(env_file, override=False)
if env_local_file.exists():
    load_dotenv(env_local_file, override=True)
