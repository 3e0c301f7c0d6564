# Overview: Flask extension instances for database, migrations, and receipt printing.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .printing import ReceiptPrinter

db = SQLAlchemy()
migrate = Migrate()
printer = ReceiptPrinter()
