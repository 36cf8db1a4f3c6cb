"""
Shared pytest setup.

The cache DB must point at memory before any `app.*` import reads settings.
"""
import os

os.environ.setdefault("CACHE_DB_PATH", ":memory:")
os.environ.setdefault("EASYTRIP_API_URL", "http://easytrip.test/api")
