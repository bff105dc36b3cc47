# storefront/celery_app.py
"""Celery application bound to the Flask app.

Every task body runs inside an app context, so tasks can use
``current_app``, the mailer extension and ``render_template``.
"""
from celery import Celery, Task

TASK_MODULES = ["storefront.tasks.email_tasks"]


def celery_init_app(app) -> Celery:
    class FlaskTask(Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery_app = Celery(app.name, task_cls=FlaskTask, include=TASK_MODULES)
    celery_app.config_from_object(app.config["CELERY"])
    celery_app.set_default()
    app.extensions["celery"] = celery_app
    return celery_app
