from .connections import ConnectionRegistry, encode_message
from .logs import json_log


class Broadcaster:
    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    def broadcast(self, message: dict) -> int:
        """
        Fan a message out to every open connection, fire-and-forget.
        Closed connections are skipped here and left for their own disconnect
        path to unregister. Returns the number of connections it was queued for.
        """
        text = encode_message(message)
        delivered = 0
        for conn in self.registry.connections():
            if conn.deliver(text):
                delivered += 1
        json_log(
            "info",
            "sync.broadcast",
            type=message.get("type"),
            delivered=delivered,
            registered=self.registry.count(),
        )
        return delivered
