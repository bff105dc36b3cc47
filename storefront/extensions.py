# --- storefront/extensions.py ---
from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_migrate import Migrate

from .services.payment_service import PaymentGateway
from .services.email_service import EmailDispatcher

db = SQLAlchemy()
jwt = JWTManager()
cors = CORS()
migrate = Migrate()

payments = PaymentGateway()
mailer = EmailDispatcher()
