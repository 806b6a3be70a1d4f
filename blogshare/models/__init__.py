from blogshare.models.base import Base

__all__ = ["Base"]
