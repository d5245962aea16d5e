"""DoH (DNS over HTTPS) resolver implementation."""
from typing import List, Optional
import httpx
from .config import logger, UPSTREAM_TIMEOUT


async def resolve_doh(client: httpx.AsyncClient, data: bytes, upstreams: List[str]) -> Optional[bytes]:
    """
    Resolve a DNS query via DoH, trying each upstream in order.
    
    Args:
        client: The HTTP client to use for the request
        data: Raw DNS query bytes
        upstreams: DoH server URLs, in order of preference
        
    Returns:
        Raw response bytes from the first upstream that answered, or None
        if every upstream failed
    """
    headers = {
        "Content-Type": "application/dns-message",
        "Accept": "application/dns-message"
    }
    
    for url in upstreams:
        try:
            resp = await client.post(url, content=data, headers=headers, timeout=UPSTREAM_TIMEOUT)
            resp.raise_for_status()
            return resp.content
        except httpx.HTTPError as e:
            logger.error(f"DoH Request to {url} failed: {e}")
    
    if not upstreams:
        logger.error("No upstream servers configured")
    return None
