"""Configuration module for fks-shield."""
import os
import logging

# --- Configuration ---
LISTEN_PORT = int(os.getenv('LISTEN_PORT', 5053))
LISTEN_HOST = os.getenv('LISTEN_HOST', '0.0.0.0')

# DOH_UPSTREAM can be a single URL or comma-separated list of URLs, tried in order
_doh_upstream_env = os.getenv('DOH_UPSTREAM', 'https://cloudflare-dns.com/dns-query')
DOH_UPSTREAMS = [url.strip() for url in _doh_upstream_env.split(',') if url.strip()]
UPSTREAM_TIMEOUT = float(os.getenv('UPSTREAM_TIMEOUT', 4.0))

WORKER_COUNT = int(os.getenv('WORKER_COUNT', 10))
QUEUE_SIZE = int(os.getenv('QUEUE_SIZE', 1000))
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

# --- Cache ---
CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
# Global expiry window in seconds, applied to every cached answer
CACHE_TTL = int(os.getenv('CACHE_TTL', 300))
# Log every miss, insert and eviction
CACHE_VERBOSE = os.getenv('CACHE_VERBOSE', 'false').lower() == 'true'
EVICT_INTERVAL = int(os.getenv('EVICT_INTERVAL', 60))

# Source addresses allowed to invalidate entries with NOTIFY, comma-separated
_notify_allowed_env = os.getenv('NOTIFY_ALLOWED', '127.0.0.1,::1')
NOTIFY_ALLOWED = [ip.strip() for ip in _notify_allowed_env.split(',') if ip.strip()]

# --- Logging Setup ---
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger("fks-shield")
