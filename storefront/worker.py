# Worker entry point:
#   celery -A storefront.worker worker -Q emails --loglevel=info
from . import create_app

flask_app = create_app()
celery_app = flask_app.extensions["celery"]
