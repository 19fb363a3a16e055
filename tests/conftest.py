# tests/conftest.py
import os

# Settings() exits the process on missing variables, so seed them before any
# project module is imported.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("ALLOWED_ORIGIN", "http://localhost:3000")
os.environ.setdefault("OPENROUTER_API_KEY", "test-openrouter-key")
os.environ.setdefault("TAVILY_API_KEY", "test-tavily-key")
