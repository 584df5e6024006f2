import os

# The app module reads these at import time; tests always run against an in-memory database.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
