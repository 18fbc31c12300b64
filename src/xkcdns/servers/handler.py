from __future__ import annotations

import logging
from typing import Optional

from dnslib import RCODE, DNSRecord

from ..comics.models import FieldSelector
from ..comics.resolver import ComicResolver
from ..errors import ComicError
from .classifier import DEFAULT_ZONE, classify_query, normalize_zone
from .response import build_answers, build_reply, rcode_for_error

logger = logging.getLogger("xkcdns.server")


class ComicQueryHandler:
    """
    Answers comic queries: classify the name, resolve the comic, build TXT answers.

    One instance is shared by every listener thread. It holds no per-request
    state, so a failing query never affects other in-flight queries.

    Example use:
        >>> from xkcdns.cache import ExpiringCache
        >>> from xkcdns.comics.fetcher import ComicFetcher
        >>> from xkcdns.comics.resolver import ComicResolver
        >>> handler = ComicQueryHandler(ComicResolver(ExpiringCache(), ComicFetcher()))
        >>> # reply = handler.handle(DNSRecord.question("42.xkcd.", "TXT"))
    """

    def __init__(self, resolver: ComicResolver, zone: str = DEFAULT_ZONE) -> None:
        self.resolver = resolver
        self.zone = normalize_zone(zone)

    def handle(self, request: DNSRecord) -> Optional[DNSRecord]:
        """Resolve a parsed DNS query into a reply.

        Inputs:
          - request: Parsed DNSRecord.
        Outputs:
          - DNSRecord reply, or None when the message must be dropped without
            a response (it is itself a response, or it carries a question
            count other than one).
        """
        if request.header.qr:
            logger.debug("Dropping DNS response message id=%d", request.header.id)
            return None
        if len(request.questions) != 1:
            logger.debug(
                "Dropping query id=%d with %d questions",
                request.header.id,
                len(request.questions),
            )
            return None

        qname = str(request.q.qname)
        selector: Optional[FieldSelector] = None
        try:
            comic_request = classify_query(qname, self.zone)
            selector = comic_request.selector
            comic = self.resolver.resolve(comic_request.target)
        except ComicError as e:
            rcode = rcode_for_error(e)
            logger.warning(
                "Query failed: qname=%s selector=%s error=%s (%s) rcode=%s",
                qname,
                selector.name if selector is not None else "-",
                type(e).__name__,
                e,
                RCODE.get(rcode),
            )
            return build_reply(request, rcode=rcode)
        except Exception as e:
            logger.exception(
                "Unexpected error answering qname=%s selector=%s: %s",
                qname,
                selector.name if selector is not None else "-",
                e,
            )
            return build_reply(request, rcode=RCODE.SERVFAIL)

        logger.info(
            "Answered qname=%s target=%s selector=%s comic=%d",
            qname,
            comic_request.target,
            selector.name,
            comic.number,
        )
        return build_reply(request, build_answers(qname, comic, selector))

    def handle_wire(self, data: bytes) -> Optional[bytes]:
        """Brief: Wire-format wrapper around handle().

        Inputs:
          - data: DNS query bytes.

        Outputs:
          - bytes reply, or None when the packet is unparseable or dropped.
        """

        try:
            request = DNSRecord.parse(data)
        except Exception as e:
            logger.debug("Dropping unparseable packet (%d bytes): %s", len(data), e)
            return None
        reply = self.handle(request)
        if reply is None:
            return None
        return reply.pack()
