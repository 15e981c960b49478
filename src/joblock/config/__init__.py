from joblock.config.config import LockConfig

__all__ = ["LockConfig"]
