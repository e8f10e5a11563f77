from __future__ import annotations

import logging
import os
import socket

import uvicorn

logger = logging.getLogger(__name__)


def _local_ip() -> str:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # Connecting a UDP socket sends nothing; it only picks the outbound interface.
        sock.connect(("8.8.8.8", 80))
        return sock.getsockname()[0]
    except OSError:
        return "127.0.0.1"
    finally:
        sock.close()


def main() -> None:
    host = os.getenv("DECK_HOST", "0.0.0.0")
    port = int(os.getenv("DECK_PORT", "8000"))

    from deckserver.main import app

    logger.info("Deck navigator on http://127.0.0.1:%d and http://%s:%d", port, _local_ip(), port)
    logger.info("Presenter view channel: ws://%s:%d/deck/presenter", _local_ip(), port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
