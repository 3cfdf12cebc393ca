"""Exception hierarchy shared by the crawlers and their collaborators."""


class CrawlerError(Exception):
    """Base class for every sync-engine failure."""


class FetchError(CrawlerError):
    """A request to the upstream host failed."""


class UpstreamHTTPError(FetchError):
    def __init__(self, status, url):
        super().__init__(f"unexpected status code: {status} ({url})")
        self.status = status
        self.url = url


class FetchTimeoutError(FetchError):
    pass


class TemporarilyBannedError(FetchError):
    """The upstream answered with its IP ban page instead of content."""


class RetryExhaustedError(CrawlerError):
    def __init__(self, attempts, last_error):
        super().__init__(f"exceeded max retries ({attempts}): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class RunCancelled(CrawlerError):
    """The run observed its external cancellation signal."""


class RunInProgressError(CrawlerError):
    """Another sync workflow already holds the run slot."""
