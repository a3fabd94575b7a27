from abistream.clients.rpc import RPC, PollingLogSubscription

__all__ = ["RPC", "PollingLogSubscription"]
