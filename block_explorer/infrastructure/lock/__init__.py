from .distributed_lock import DistributedLock, LockStatus

__all__ = ["DistributedLock", "LockStatus"]
