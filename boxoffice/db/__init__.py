from boxoffice.db.base import Base

__all__ = ["Base"]
