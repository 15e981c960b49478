from joblock.api.server import LockStatus, create_app

__all__ = ["create_app", "LockStatus"]
