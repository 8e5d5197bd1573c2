from contextlib import contextmanager

from models.db import db


@contextmanager
def unit_of_work():
    """
    Scoped transaction over the app's db session.

    Everything flushed inside the block is committed together on a clean
    exit; any exception rolls the whole block back and is re-raised.

        with unit_of_work() as session:
            session.add(user)
            session.flush()
            create_session(user.id)
    """
    session = db.session
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
