"""
Main server implementation with worker pool.

NOTIFY messages invalidate cached answers. Only sources listed in
NOTIFY_ALLOWED may send them; everyone else is answered with REFUSED.
"""
import asyncio
import signal
import struct
import httpx
from dnslib import DNSRecord, OPCODE, RCODE
from .config import (
    logger, LISTEN_HOST, LISTEN_PORT, WORKER_COUNT, QUEUE_SIZE, DOH_UPSTREAMS,
    CACHE_ENABLED, CACHE_TTL, CACHE_VERBOSE, EVICT_INTERVAL, NOTIFY_ALLOWED,
)
from .protocol import DNSProtocol
from .cache import DNSCache
from .resolver import resolve_doh


def is_cacheable(response: DNSRecord) -> bool:
    """Server failures and truncated answers are passed through but never cached."""
    return response.header.rcode != RCODE.SERVFAIL and not response.header.tc


async def worker(name, queue, client, cache, upstreams, notify_allowed=NOTIFY_ALLOWED):
    """
    Worker that consumes packets from queue and processes them.

    Args:
        name: Worker identifier for logging
        queue: Asyncio queue containing DNS requests
        client: HTTP client for DoH requests
        cache: DNSCache shared by all workers
        upstreams: DoH server URLs
        notify_allowed: Source addresses whose NOTIFY messages are honoured
    """
    logger.debug(f"Worker {name} started")
    while True:
        data, addr, transport = await queue.get()

        try:
            # 1. Parse Request
            request = DNSRecord.parse(data)
            if not request.questions:
                logger.debug(f"Dropping query without question from {addr[0]}")
                continue
            qname = str(request.q.qname)

            # 2. Upstream says the record changed
            if request.header.opcode == OPCODE.NOTIFY:
                reply = request.reply()
                if addr[0] in notify_allowed:
                    cache.remove(request, all_variants=True)
                    logger.debug(f"[NOTIFY] {qname} invalidated by {addr[0]}")
                else:
                    reply.header.rcode = RCODE.REFUSED
                    logger.warning(f"[NOTIFY] {qname} from {addr[0]} refused")
                transport.sendto(reply.pack(), addr)
                continue

            # 3. Check Cache
            cached = cache.find(request)
            if cached is not None:
                cached[:2] = struct.pack("!H", request.header.id)
                transport.sendto(bytes(cached), addr)
                logger.debug(f"[CACHE] {qname} -> {addr[0]}")
                continue

            # 4. Fetch from DoH
            response_bytes = await resolve_doh(client, data, upstreams)
            if response_bytes:
                transport.sendto(response_bytes, addr)
                response = DNSRecord.parse(response_bytes)
                if is_cacheable(response):
                    cache.insert(request, response)
                logger.debug(f"[UPSTREAM] {qname} -> {addr[0]}")

        except Exception as e:
            logger.error(f"Worker processing error: {e}")
        finally:
            queue.task_done()


async def evictor_task(cache, ttl, interval):
    """
    Runs periodically to drop cache entries older than ttl.

    Args:
        cache: DNSCache instance
        ttl: Expiry window in seconds
        interval: Seconds between sweeps
    """
    while True:
        await asyncio.sleep(interval)
        cache.evict(ttl)


async def main():
    """Main server entry point."""
    logger.info(f"Initializing with upstream URLs: {DOH_UPSTREAMS}")

    queue = asyncio.Queue(maxsize=QUEUE_SIZE)
    cache = DNSCache(verbose=CACHE_VERBOSE, enabled=CACHE_ENABLED)
    logger.info(f"Cache {'enabled' if CACHE_ENABLED else 'disabled'}, TTL {CACHE_TTL}s, sweep every {EVICT_INTERVAL}s")

    loop = asyncio.get_running_loop()

    limits = httpx.Limits(max_keepalive_connections=20, max_connections=WORKER_COUNT + 5)
    async with httpx.AsyncClient(http2=True, limits=limits) as client:

        # Start UDP Server
        transport, protocol = await loop.create_datagram_endpoint(
            lambda: DNSProtocol(queue),
            local_addr=(LISTEN_HOST, LISTEN_PORT)
        )

        tasks = []
        for i in range(WORKER_COUNT):
            task = asyncio.create_task(worker(f"w-{i}", queue, client, cache, DOH_UPSTREAMS))
            tasks.append(task)

        tasks.append(asyncio.create_task(evictor_task(cache, CACHE_TTL, EVICT_INTERVAL)))

        # Graceful Shutdown handling
        stop_event = asyncio.Event()
        def signal_handler():
            logger.info("Shutdown signal received.")
            stop_event.set()

        try:
            loop.add_signal_handler(signal.SIGTERM, signal_handler)
            loop.add_signal_handler(signal.SIGINT, signal_handler)
        except NotImplementedError:
            logger.warning("Signal handlers not supported on this platform. This is expected on Windows systems.")

        await stop_event.wait()

        logger.info("Stopping transport...")
        transport.close()

        logger.info("Cancelling workers...")
        for task in tasks:
            task.cancel()

        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Dropping {len(cache)} cached responses")
