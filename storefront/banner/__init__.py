from flask import Blueprint

bp = Blueprint("banner", __name__, url_prefix="/banners")

from . import routes  # noqa: E402,F401
