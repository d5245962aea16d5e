"""Unit tests for the DNS protocol module."""
import asyncio
from unittest.mock import Mock
from fks_shield.protocol import DNSProtocol


class TestDNSProtocol:
    """Tests for the DNSProtocol class."""

    def test_protocol_initialization(self):
        queue = asyncio.Queue()
        protocol = DNSProtocol(queue)

        assert protocol.queue is queue
        assert protocol.transport is None

    def test_connection_made(self):
        protocol = DNSProtocol(asyncio.Queue())
        transport = Mock()
        transport.get_extra_info.return_value = ("127.0.0.1", 5053)

        protocol.connection_made(transport)

        assert protocol.transport is transport

    def test_datagram_received_success(self):
        queue = asyncio.Queue(maxsize=10)
        protocol = DNSProtocol(queue)
        transport = Mock()
        protocol.transport = transport

        protocol.datagram_received(b"test_dns_query", ("127.0.0.1", 12345))

        assert queue.qsize() == 1
        assert queue.get_nowait() == (b"test_dns_query", ("127.0.0.1", 12345), transport)

    def test_datagram_received_queue_full(self):
        """A full queue drops the packet instead of raising."""
        queue = asyncio.Queue(maxsize=1)
        protocol = DNSProtocol(queue)
        protocol.transport = Mock()
        queue.put_nowait(("first", ("1.1.1.1", 1), protocol.transport))

        protocol.datagram_received(b"test_dns_query", ("127.0.0.1", 12345))

        assert queue.qsize() == 1

    def test_error_received_does_not_raise(self):
        protocol = DNSProtocol(asyncio.Queue())
        protocol.error_received(OSError("port unreachable"))
