from contextlib import contextmanager

from flask_bcrypt import Bcrypt
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import SQLAlchemyError

from .errors import DatabaseError

db = SQLAlchemy()
bcrypt = Bcrypt()


@contextmanager
def atomic(failure_message='Database operation failed'):
    """Commit everything done inside the block, or roll it all back.

    Our own errors propagate unchanged; driver errors are wrapped in
    DatabaseError carrying ``failure_message``.
    """
    try:
        yield db.session
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise DatabaseError(failure_message, e) from e
    except Exception:
        db.session.rollback()
        raise
