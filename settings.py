import os
from dataclasses import dataclass, fields
from pathlib import Path

import yaml

cwd = Path(__file__).parent

ENV_OVERRIDES = {
	"APP_SECRET": "app_secret",
	"ADMIN_PASSWORD": "admin_password",
	"FIREBASE_API_KEY": "firebase_api_key",
	"FIREBASE_PROJECT_ID": "firebase_project_id",
	"GEMINI_API_KEY": "gemini_api_key",
	"GEMINI_MODEL": "gemini_model",
	"TENOR_API_KEY": "tenor_api_key",
	"GATEWAY_DATABASE_PATH": "database_path",
	"GATEWAY_LOG_CONFIG": "log_config_path",
	"GATEWAY_HTTP_TIMEOUT": "http_timeout",
}


@dataclass
class Settings:
	"""
	Everything the gateway needs to reach its upstreams.
	Built once at startup and handed to whoever needs it; nothing reads globals.
	"""
	app_secret: str = ""
	admin_password: str | None = None
	firebase_api_key: str = ""
	firebase_project_id: str = ""
	gemini_api_key: str = ""
	gemini_model: str = "gemini-3-flash-preview"
	tenor_api_key: str = ""

	firestore_url: str = "https://firestore.googleapis.com/v1"
	identity_url: str = "https://identitytoolkit.googleapis.com/v1"
	gemini_url: str = "https://generativelanguage.googleapis.com/v1beta"
	tenor_url: str = "https://tenor.googleapis.com/v2"
	avatar_url: str = "https://api.dicebear.com/7.x/avataaars/png"

	feed_page_size: int = 100
	comments_page_size: int = 100
	admin_page_size: int = 500
	gif_limit: int = 30

	http_timeout: float = 30.0
	database_path: str = str(cwd / ".database" / "moderation.db")
	log_config_path: str = "logger_config.yaml"


def _coerce(name: str, value):
	kind = {f.name: f.type for f in fields(Settings)}[name]
	if kind in (int, "int"):
		return int(value)
	if kind in (float, "float"):
		return float(value)
	return value


def load_settings(path: str | Path | None = None, environ=None) -> Settings:
	"""
	Read settings from a YAML file, then apply environment overrides.
	A missing file just means defaults.
	"""
	environ = os.environ if environ is None else environ
	path = Path(path or environ.get("GATEWAY_CONFIG", "config.yaml"))

	values = {}
	if path.is_file():
		with open(path, "r") as f:
			values = yaml.safe_load(f) or {}
		if not isinstance(values, dict):
			raise ValueError(f"Config file {path} must contain a mapping")

	known = {f.name for f in fields(Settings)}
	unknown = set(values) - known
	if unknown:
		raise ValueError(f"Unknown config keys in {path}: {sorted(unknown)}")

	for env_name, attr in ENV_OVERRIDES.items():
		if environ.get(env_name):
			values[attr] = environ[env_name]

	return Settings(**{k: _coerce(k, v) for k, v in values.items()})
