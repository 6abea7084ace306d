class ParseError(Exception):
    """Raised when a page body cannot be turned into a document at all."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Could not parse {url}: {reason}")
