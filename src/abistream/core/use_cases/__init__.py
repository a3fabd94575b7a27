from abistream.core.use_cases.log_sync import LogSynchronizer

__all__ = ["LogSynchronizer"]
