import logging
import socketserver
import struct
from typing import Optional

from .handler import ComicQueryHandler

logger = logging.getLogger("xkcdns.server")


def _recv_exact(sock, n: int) -> bytes:
    """
    Brief: Read exactly n bytes from a stream socket.

    Inputs:
    - sock: connected stream socket
    - n: number of bytes to read

    Outputs:
    - bytes: exactly n bytes, or b"" if the peer closed the connection early
    """
    buf = b""
    while len(buf) < n:
        chunk = sock.recv(n - len(buf))
        if not chunk:
            return b""
        buf += chunk
    return buf


class DNSTCPHandler(socketserver.BaseRequestHandler):
    """
    Brief: DNS-over-TCP handler using 2-byte length-prefixed framing.

    Inputs:
    - request: connected socket provided by socketserver
    - client_address: peer address

    Outputs:
    - None

    Serves queries on the connection until the client closes it, the idle
    timeout expires, or a frame cannot be read.
    """

    query_handler: Optional[ComicQueryHandler] = None
    idle_timeout: float = 15.0

    def handle(self) -> None:
        sock = self.request
        sock.settimeout(self.idle_timeout)
        handler = self.query_handler
        if handler is None:  # pragma: no cover - server not configured
            logger.error("No query handler configured; closing TCP connection")
            return
        while True:
            try:
                hdr = _recv_exact(sock, 2)
                if not hdr:
                    return
                (length,) = struct.unpack("!H", hdr)
                data = _recv_exact(sock, length)
                if not data:
                    return
            except OSError as e:
                logger.debug("TCP connection from %s ended: %s", self.client_address, e)
                return

            resp = handler.handle_wire(data)
            if resp is None:
                continue
            try:
                sock.sendall(struct.pack("!H", len(resp)) + resp)
            except OSError as e:
                logger.debug("TCP send to %s failed: %s", self.client_address, e)
                return


class _ReusableTCPServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True


class TCPDNSServer:
    """
    Brief: Threaded DNS-over-TCP listener sharing the UDP query handler.

    Inputs:
    - host: listen address
    - port: listen port
    - query_handler: ComicQueryHandler answering every query

    Outputs:
    - TCPDNSServer instance; call serve_forever() in a thread and stop() to end.
    """

    def __init__(self, host: str, port: int, query_handler: ComicQueryHandler) -> None:
        DNSTCPHandler.query_handler = query_handler
        self.server = _ReusableTCPServer((host, port), DNSTCPHandler)
        logger.debug("DNS TCP server bound to %s:%d", host, port)

    @property
    def server_address(self):
        return self.server.server_address

    def serve_forever(self) -> None:
        self.server.serve_forever()

    def stop(self) -> None:
        try:
            self.server.shutdown()
        except Exception:  # pragma: no cover
            logger.exception("Error while shutting down TCP server")
        try:
            self.server.server_close()
        except Exception:  # pragma: no cover
            logger.exception("Error while closing TCP server socket")
