from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


# Every mapped class must be registered on Base.metadata before create_all or autogenerate
from app.models import *  # noqa
