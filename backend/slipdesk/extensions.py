# Overview: Shared extension instances; bound to the app in create_app().

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Only routes and cli reach db.session directly; services take the session as an argument
db = SQLAlchemy()
migrate = Migrate(compare_type=True)
