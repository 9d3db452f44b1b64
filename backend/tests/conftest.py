"""Root conftest — shared test configuration."""

import os

# Keep tests independent of a developer's .env / shell
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("REQUEST_TIMEOUT_SECONDS", "5")
