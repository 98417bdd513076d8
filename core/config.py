import os
import re

BASE_URL = os.getenv("GITDRIVE_URL", "http://localhost:8080")
HTTP_TIMEOUT = float(os.getenv("GITDRIVE_HTTP_TIMEOUT", "10"))
STREAM_RETRIES = int(os.getenv("GITDRIVE_STREAM_RETRIES", "0"))

LOG_LEVEL = os.getenv("GITDRIVE_LOG_LEVEL", "INFO")
LOG_PATH = os.getenv("GITDRIVE_LOG", os.path.expanduser("~/.gitdrive/client.log"))

API_PREFIX = "/_api"


def normalize_base_url(s: str) -> str:
	s = (s or "").strip()
	if not re.match(r"^https?://", s, re.I):
		s = "http://" + s
	return s.rstrip("/")
