from sqlmodel import Session, create_engine
from multichat.core.config import settings

_connect_args = {'check_same_thread': False} if settings.DB_URL.startswith('sqlite') else {}

engine = create_engine(settings.DB_URL, pool_pre_ping=True, connect_args=_connect_args)


def get_session():
    with Session(engine) as session:
        yield session
