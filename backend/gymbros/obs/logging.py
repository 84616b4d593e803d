"""Structured JSON logging for the discovery engine.

Each record carries the discovery session and viewer bound for the current
task. Location fields and credentials never reach the log stream, and profile
models are logged by id only.
"""

from __future__ import annotations

import json
import logging
import random
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel

from gymbros.settings import settings

_SESSION_ID: ContextVar[Optional[str]] = ContextVar("gymbros_session_id", default=None)
_USER_ID: ContextVar[Optional[str]] = ContextVar("gymbros_user_id", default=None)

_LOGGER_NAME = "gymbros"

# Matched exactly: short names like "lat" would otherwise hit unrelated keys
_LOCATION_KEYS = frozenset({"lat", "lng", "lon", "latitude", "longitude", "coordinates", "location"})
_SECRET_FRAGMENTS = ("token", "secret", "password", "authorization", "phone", "email")

_STRING_LIMIT = 200
_ITEM_LIMIT = 8

# Attributes every LogRecord has; anything else arrived through ``extra=``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def bind_context(*, session_id: Optional[str] = None, user_id: Optional[str] = None) -> Dict[str, Token]:
	"""Bind discovery-session fields for the current task and return reset tokens."""
	tokens: Dict[str, Token] = {}
	if session_id is not None:
		tokens["session_id"] = _SESSION_ID.set(session_id)
	if user_id is not None:
		tokens["user_id"] = _USER_ID.set(user_id)
	return tokens


def reset_context(tokens: Dict[str, Token]) -> None:
	variables = {"session_id": _SESSION_ID, "user_id": _USER_ID}
	for key, token in tokens.items():
		variables[key].reset(token)


def _is_sensitive(key: str) -> bool:
	lowered = key.lower()
	return lowered in _LOCATION_KEYS or any(fragment in lowered for fragment in _SECRET_FRAGMENTS)


def _scrub(key: str, value: Any) -> Any:
	if _is_sensitive(key):
		return "[redacted]"
	if isinstance(value, BaseModel):
		# Profiles and events log as their id, never their full body
		return getattr(value, "id", None) or type(value).__name__
	if isinstance(value, str):
		return value if len(value) <= _STRING_LIMIT else value[:_STRING_LIMIT] + "…"
	if isinstance(value, dict):
		items = list(value.items())
		scrubbed = {str(k): _scrub(str(k), v) for k, v in items[:_ITEM_LIMIT]}
		if len(items) > _ITEM_LIMIT:
			scrubbed["…"] = f"+{len(items) - _ITEM_LIMIT} keys"
		return scrubbed
	if isinstance(value, (list, tuple, set, frozenset)):
		values = list(value)
		scrubbed_list = [_scrub(key, item) for item in values[:_ITEM_LIMIT]]
		if len(values) > _ITEM_LIMIT:
			scrubbed_list.append(f"+{len(values) - _ITEM_LIMIT} more")
		return scrubbed_list
	return value


class JSONLogFormatter(logging.Formatter):
	"""One JSON object per line, tagged with service and session fields."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (match logging api)
		entry: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"logger": record.name,
			"msg": record.getMessage(),
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		for field, variable in (("session_id", _SESSION_ID), ("user_id", _USER_ID)):
			bound = variable.get()
			if bound:
				entry[field] = bound
		if record.exc_info:
			entry["exc_info"] = self.formatException(record.exc_info)
		for key, value in vars(record).items():
			if key not in _RECORD_ATTRS:
				entry[key] = _scrub(key, value)
		return json.dumps(entry, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Drop a share of INFO records; every other level passes."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO:
			return True
		rate = settings.obs_log_sampling_rate_info
		if rate >= 1.0:
			return True
		return rate > 0.0 and random.random() < rate


def configure_logging() -> logging.Logger:
	"""Route the root logger through the JSON formatter and INFO sampling."""
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter())
	root = logging.getLogger()
	root.handlers = [handler]
	root.setLevel(settings.obs_log_level)
	return get_logger()


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)
