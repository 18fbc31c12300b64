import logging
import socketserver
from typing import Optional

from dnslib import QTYPE, DNSRecord

from .handler import ComicQueryHandler
from .response import build_reply

logger = logging.getLogger("xkcdns.server")

# Payload size every DNS client accepts without EDNS(0).
CLASSIC_UDP_PAYLOAD = 512


def client_udp_payload(req: DNSRecord, max_udp_payload: int) -> int:
    """Compute how many bytes may be sent back to a UDP client.

    Inputs:
      - req: Parsed DNS query.
      - max_udp_payload: Server-side cap for EDNS-advertised sizes.
    Outputs:
      - int: 512 without EDNS(0); otherwise the advertised size clamped to
        [512, max_udp_payload].
    """
    for rr in req.ar:
        # The OPT pseudo-record carries the requestor's payload size in its class.
        if rr.rtype == QTYPE.OPT:
            advertised = int(rr.rclass)
            return max(CLASSIC_UDP_PAYLOAD, min(advertised, int(max_udp_payload)))
    return CLASSIC_UDP_PAYLOAD


def fit_udp_response(req: DNSRecord, reply: DNSRecord, max_udp_payload: int) -> bytes:
    """Pack reply for UDP, truncating when it exceeds the client's payload size.

    Inputs:
      - req: Parsed DNS query.
      - reply: Full reply.
      - max_udp_payload: Server-side EDNS payload cap.
    Outputs:
      - bytes: The packed reply, or an answer-less reply with TC set so the
        client retries over TCP.
    """
    wire = reply.pack()
    limit = client_udp_payload(req, max_udp_payload)
    if len(wire) <= limit:
        return wire
    truncated = build_reply(req, rcode=reply.header.rcode)
    truncated.header.tc = 1
    logger.debug(
        "Truncating %d byte response for %s (limit %d)", len(wire), req.q.qname, limit
    )
    return truncated.pack()


class DNSUDPHandler(socketserver.BaseRequestHandler):
    """
    Handles UDP DNS requests.
    This class is instantiated for each incoming DNS query.

    Example use:
        This handler is used internally by the DNSServer and is not
        typically instantiated directly by users.
    """

    query_handler: Optional[ComicQueryHandler] = None
    max_udp_payload: int = 1232

    def handle(self):
        """Process a single UDP DNS query.

        Inputs:
          - None (called by socketserver for each UDP datagram).
        Outputs:
          - None; sends at most one DNS response back to the client. Dropped
            and unparseable messages get no response.
        """
        data, sock = self.request
        client_ip = self.client_address[0]

        try:
            req = DNSRecord.parse(data)
        except Exception as e:
            logger.debug("Dropping unparseable packet from %s: %s", client_ip, e)
            return

        handler = self.query_handler
        if handler is None:  # pragma: no cover - server not configured
            logger.error("No query handler configured; dropping query from %s", client_ip)
            return

        reply = handler.handle(req)
        if reply is None:
            return
        wire = fit_udp_response(req, reply, self.max_udp_payload)
        sock.sendto(wire, self.client_address)


class DNSServer:
    """A basic UDP DNS server wrapper.

    Example use:
        >>> from xkcdns.servers.udp_server import DNSServer
        >>> import threading
        >>> import time
        >>> # Start server in a background thread
        >>> server = DNSServer("127.0.0.1", 5355, query_handler)
        >>> server_thread = threading.Thread(target=server.serve_forever, daemon=True)
        >>> server_thread.start()
        >>> # The server is now running in the background
        >>> time.sleep(0.1)
        >>> server.stop()
    """

    def __init__(
        self,
        host: str,
        port: int,
        query_handler: ComicQueryHandler,
        max_udp_payload: int = 1232,
    ) -> None:
        """Initialize a UDP DNSServer.

        Inputs:
            host: The host to listen on.
            port: The port to listen on.
            query_handler: Shared ComicQueryHandler answering every query.
            max_udp_payload: Largest UDP response sent to EDNS(0) clients.
        """
        DNSUDPHandler.query_handler = query_handler
        DNSUDPHandler.max_udp_payload = max(CLASSIC_UDP_PAYLOAD, int(max_udp_payload))
        try:
            self.server = socketserver.ThreadingUDPServer((host, port), DNSUDPHandler)
        except PermissionError as e:
            logger.error(
                "Permission denied when binding to %s:%d. Try a port >1024 or run with elevated privileges. Original error: %s",
                host,
                port,
                e,
            )
            raise  # Re-raise the exception after logging

        # Ensure request handler threads do not block shutdown
        self.server.daemon_threads = True
        logger.debug("DNS UDP server bound to %s:%d", host, port)

    @property
    def server_address(self):
        return self.server.server_address

    def serve_forever(self) -> None:
        """Start the UDP server loop and listen for requests.

        Inputs:
          - None
        Outputs:
          - None; runs until shutdown is requested or KeyboardInterrupt occurs.
        """
        try:
            self.server.serve_forever()
        except KeyboardInterrupt:  # pragma: no cover
            pass

    def stop(self) -> None:
        """Request graceful shutdown and close the underlying UDP socket.

        Inputs:
          - None
        Outputs:
          - None; best-effort shutdown suitable for use from signal handlers.
        """
        try:
            # First ask the ThreadingUDPServer loop to stop accepting requests.
            self.server.shutdown()
        except Exception:  # pragma: no cover
            logger.exception("Error while shutting down UDP server")
        try:
            # Then close the socket so resources are released promptly.
            self.server.server_close()
        except Exception:  # pragma: no cover
            logger.exception("Error while closing UDP server socket")

    def close(self) -> None:
        """Close the socket of a server whose loop was never started."""
        self.server.server_close()
