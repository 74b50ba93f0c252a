from db.session import SessionLocal


def get_session_factory():
    return SessionLocal
