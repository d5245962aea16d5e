"""UDP listener feeding DNS queries to the worker queue."""
import asyncio
from .config import logger


class DNSProtocol(asyncio.DatagramProtocol):
    """Queues every received datagram together with its reply address."""

    def __init__(self, queue):
        self.queue = queue
        self.transport = None

    def connection_made(self, transport):
        self.transport = transport
        sockname = transport.get_extra_info('sockname')
        logger.info(f"UDP Server listening on {sockname}")

    def datagram_received(self, data, addr):
        try:
            self.queue.put_nowait((data, addr, self.transport))
        except asyncio.QueueFull:
            logger.warning(f"Queue full, dropping query from {addr[0]}")

    def error_received(self, exc):
        logger.error(f"UDP socket error: {exc}")
