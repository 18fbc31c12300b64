from __future__ import annotations

from typing import Iterable, List

from dnslib import CLASS, QTYPE, RCODE, RR, TXT, DNSRecord

from ..comics.models import Comic, FieldSelector
from ..errors import InvalidRequest, UpstreamUnavailable

# A single TXT character-string carries at most 255 bytes.
MAX_TXT_STRING = 255

ANSWER_TTL = 0


def _txt_strings(text: str) -> List[bytes]:
    """Brief: Split text into TXT character-strings of at most 255 bytes.

    Inputs:
      - text: Unicode text to publish.

    Outputs:
      - list[bytes]: UTF-8 chunks; a single empty string for empty text.
    """

    data = text.encode("utf-8")
    if not data:
        return [b""]
    return [data[i : i + MAX_TXT_STRING] for i in range(0, len(data), MAX_TXT_STRING)]


def txt_answer(domain: str, text: str) -> RR:
    return RR(
        rname=domain,
        rtype=QTYPE.TXT,
        rclass=CLASS.IN,
        ttl=ANSWER_TTL,
        rdata=TXT(_txt_strings(text)),
    )


def selected_fields(comic: Comic, selector: FieldSelector) -> List[str]:
    """Brief: Return the comic fields requested by selector, in answer order.

    Inputs:
      - comic: Resolved Comic.
      - selector: FieldSelector.

    Outputs:
      - list[str]: For ALL the order is always title, image URL, alt text.
    """

    if selector is FieldSelector.TITLE:
        return [comic.title]
    if selector is FieldSelector.IMAGE:
        return [comic.image_url]
    if selector is FieldSelector.ALT_TEXT:
        return [comic.alt_text]
    return [comic.title, comic.image_url, comic.alt_text]


def build_answers(domain: str, comic: Comic, selector: FieldSelector) -> List[RR]:
    """Brief: Build the ordered TXT answers for a resolved comic.

    Inputs:
      - domain: Queried domain name; every answer is owned by this name.
      - comic: Resolved Comic.
      - selector: Requested field subset.

    Outputs:
      - list[RR]: TXT/IN/TTL 0 records, one per selected field.
    """

    return [txt_answer(domain, text) for text in selected_fields(comic, selector)]


def rcode_for_error(exc: BaseException) -> int:
    """Brief: Map a pipeline failure to a DNS response code.

    Inputs:
      - exc: Exception raised while classifying or resolving a query.

    Outputs:
      - int: RCODE.NXDOMAIN for malformed names and for comics the site does
        not serve (non-success HTTP status); RCODE.SERVFAIL for transport
        failures, unextractable pages, and anything unexpected.
    """

    if isinstance(exc, (InvalidRequest, UpstreamUnavailable)):
        return RCODE.NXDOMAIN
    return RCODE.SERVFAIL


def build_reply(
    request: DNSRecord,
    answers: Iterable[RR] = (),
    rcode: int = RCODE.NOERROR,
) -> DNSRecord:
    """Brief: Build a reply to request with the given answers and rcode.

    Inputs:
      - request: Parsed DNS query.
      - answers: TXT records to attach (ignored for error rcodes by callers).
      - rcode: Response code.

    Outputs:
      - DNSRecord reply sharing the request ID and question, marked
        authoritative for the zone.
    """

    reply = request.reply(ra=0, aa=1)
    reply.header.rcode = rcode
    for rr in answers:
        reply.add_answer(rr)
    return reply
