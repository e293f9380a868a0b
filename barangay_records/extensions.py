"""Flask extensions.

Keeping extension instances in a dedicated module prevents circular imports
and avoids accidentally creating *multiple* SQLAlchemy instances across the
codebase.

Import these objects everywhere:

    from .extensions import db, mail, cors
"""

from flask_cors import CORS
from flask_mail import Mail
from flask_sqlalchemy import SQLAlchemy


db = SQLAlchemy()
mail = Mail()
cors = CORS()
