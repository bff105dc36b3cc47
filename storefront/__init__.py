from flask import Flask, jsonify

from .config import Config
from .celery_app import celery_init_app
from .extensions import db, jwt, cors, migrate, payments, mailer


def create_app(config_object=Config):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)
    config_object.init_app(app)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/*": {"origins": "*"}})
    migrate.init_app(app, db)
    payments.init_app(app)
    mailer.init_app(app)
    celery_init_app(app)

    # Register blueprints
    from .auth import bp as auth_bp; app.register_blueprint(auth_bp)
    from .product import bp as product_bp; app.register_blueprint(product_bp)
    from .coupon import bp as coupon_bp; app.register_blueprint(coupon_bp)
    from .checkout import bp as checkout_bp; app.register_blueprint(checkout_bp)
    from .order import bp as order_bp; app.register_blueprint(order_bp)
    from .role import bp as role_bp; app.register_blueprint(role_bp)
    from .catalogue import bp as catalogue_bp; app.register_blueprint(catalogue_bp)
    from .banner import bp as banner_bp; app.register_blueprint(banner_bp)
    from .dashboard import bp as dashboard_bp; app.register_blueprint(dashboard_bp)

    from .errors import register_error_handlers
    register_error_handlers(app)

    from .cli import register_cli
    register_cli(app)

    @app.get("/")
    def health():
        return jsonify(ok=True, msg="API running")

    with app.app_context():
        from . import model  # noqa: F401  (register tables)
        db.create_all()
        from .services.role_service import sync_permissions
        sync_permissions()

    return app
