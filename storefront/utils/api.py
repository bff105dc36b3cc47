# --- storefront/utils/api.py ---
from datetime import datetime, timezone

from flask import jsonify


def _envelope(status: bool, message, data=None):
    return {
        "status": status,
        "message": message,
        "data": {
            **(data or {}),
            "API_TIME": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
        },
    }


def api_ok(message, data=None):
    return _envelope(True, message, data)


def api_error(message, data=None):
    return _envelope(False, message, data)


# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r


def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r
