"""Entry point for fks-shield."""
import asyncio
from .server import main as server_main

__all__ = ['main']


def main():
    """Run the caching proxy until interrupted."""
    try:
        asyncio.run(server_main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
