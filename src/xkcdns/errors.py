from __future__ import annotations

from typing import Optional


class ComicError(Exception):
    """
    Brief: Base class for failures raised while answering a comic query.

    Inputs:
    - message: description

    Outputs:
    - Exception instance

    Every subclass is recovered at the query handler boundary and mapped to a
    DNS response code; none of them are fatal to the process.
    """

    pass


class InvalidRequest(ComicError):
    """
    Brief: The query name does not match any recognized form under the zone.

    Inputs:
    - message: description

    Outputs:
    - Exception instance
    """

    pass


class FetchFailed(ComicError):
    """
    Brief: Transport-level failure reaching the comic site (includes timeouts).

    Inputs:
    - message: description

    Outputs:
    - Exception instance
    """

    pass


class UpstreamUnavailable(ComicError):
    """
    Brief: The comic site answered with a non-success HTTP status.

    Inputs:
    - message: description
    - status_code: HTTP status returned by the site (optional)

    Outputs:
    - Exception instance
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ExtractionFailed(ComicError):
    """
    Brief: A document was fetched but its fields or comic number are not derivable.

    Inputs:
    - message: description

    Outputs:
    - Exception instance
    """

    pass
