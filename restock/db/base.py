from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import models so they are registered with Base
from restock.models import verification_code  # noqa: E402,F401
