"""
Error types raised by the Financial Report RAG pipeline
"""


class FinancialReportRAGError(Exception):
    """Base class for all pipeline errors"""


class FilingNotFound(FinancialReportRAGError):
    """No 10-K or 20-F filing could be located for a ticker"""

    def __init__(self, ticker: str, message: str = None):
        self.ticker = ticker
        super().__init__(
            message or
            f"No 10-K or 20-F filing found for {ticker} on SEC EDGAR")


class DocumentParseError(FinancialReportRAGError):
    """A filing index page did not contain a primary document link"""


class FactsUnavailable(FinancialReportRAGError):
    """Structured financial facts could not be obtained for a ticker"""

    def __init__(self, ticker: str):
        self.ticker = ticker
        super().__init__(
            f"Financial data unavailable for {ticker}. "
            f"Check the ticker or the financial data provider configuration.")


class UpstreamError(FinancialReportRAGError):
    """A generation backend failed in a way that should not be retried"""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class UpstreamRateLimited(UpstreamError):
    """A generation backend rejected the request with a rate limit"""

    def __init__(self, provider: str, message: str = "rate limit exceeded"):
        super().__init__(provider, message)


class MalformedReport(FinancialReportRAGError):
    """Model output could not be parsed into an analysis report"""
