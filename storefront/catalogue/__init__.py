from flask import Blueprint

bp = Blueprint("catalogue", __name__, url_prefix="/catalogues")

from . import routes  # noqa: E402,F401
