# Overview: Flask extension instances for the purchase-cycle database and its migrations.

from pathlib import Path

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# backend/migrations, independent of the working directory `flask db` runs from
MIGRATIONS_DIR = str(Path(__file__).resolve().parent.parent / "migrations")

db = SQLAlchemy()
migrate = Migrate(directory=MIGRATIONS_DIR)
