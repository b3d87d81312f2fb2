"""
EDGAR Filing Collector

Locates and downloads the most recent annual filing (10-K, or 20-F for
foreign issuers) of a company from SEC EDGAR and turns it into clean text
focused on the Management's Discussion and Analysis section.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Tuple
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup, NavigableString

from ..config import settings as default_settings, Settings
from ..exceptions import DocumentParseError, FilingNotFound
from ..retry import retry_with_backoff

logger = logging.getLogger(__name__)

SEC_BASE_URL = "https://www.sec.gov"
LISTING_URL_TEMPLATE = (
    SEC_BASE_URL + "/cgi-bin/browse-edgar?action=getcompany&CIK={ticker}"
    "&type={form_type}&dateb=&owner=exclude&count=10")

# Priority order: domestic annual report first, then foreign issuer form
FILING_TYPES = ("10-K", "20-F")

LISTING_ATTEMPTS = 2
PREVIEW_LENGTH = 10000
TRUNCATION_NOTICE = "... [Truncated at 500k chars]"

TICKER_PATTERN = re.compile(r"^[A-Za-z]{1,5}$")

# Placeholders survive whitespace normalisation
NEWLINE_MARKER = "{{NEWLINE}}"
TABLE_START_MARKER = "{{TABLE_START}}"
TABLE_END_MARKER = "{{TABLE_END}}"

NON_TEXT_TAGS = ["script", "style", "img", "svg", "iframe", "noscript",
                 "ix:header"]

# Groups searched in order; within the first group that matches, the
# latest occurrence of any spelling wins
SECTION_KEYWORDS = (
    ("Management's Discussion and Analysis",
     "Management’s Discussion and Analysis",
     "MANAGEMENT'S DISCUSSION AND ANALYSIS",
     "MANAGEMENT’S DISCUSSION AND ANALYSIS"),
    ("Item 7.", "ITEM 7."),
    ("Operating and Financial Review", "OPERATING AND FINANCIAL REVIEW"),
)


@dataclass
class EdgarFiling:
    """Data class for EDGAR filing information"""
    ticker: str
    form_type: str
    index_url: str
    document_url: str
    text_content: str
    filing_date: Optional[str] = None
    fetched_at: str = field(
        default_factory=lambda: datetime.now().isoformat())

    @property
    def char_count(self) -> int:
        return len(self.text_content)


class EdgarFilingCollector:
    """
    Collector for the latest 10-K / 20-F filing of a company
    """

    def __init__(self,
                 config: Settings = None,
                 session: requests.Session = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config or default_settings
        self.session = session or requests.Session()
        self.session.headers.update(self.config.edgar_headers)
        self._sleep = sleep

    @staticmethod
    def is_supported(ticker: str) -> bool:
        """Check whether a ticker looks like a valid US listing symbol"""
        return bool(ticker) and bool(TICKER_PATTERN.match(ticker))

    def fetch_latest_filing(self, ticker: str) -> EdgarFiling:
        """
        Locate, download and clean the latest annual filing for a ticker

        Args:
            ticker: Company ticker symbol

        Returns:
            EdgarFiling with cleaned narrative text

        Raises:
            FilingNotFound: No 10-K or 20-F listing matched
            DocumentParseError: The filing index had no primary document
        """
        ticker = ticker.upper()
        logger.info(f"Fetching latest annual filing for {ticker}")

        index_url, filing_date = self.find_filing_index_url(ticker)
        document_url, form_type = self.find_primary_document_url(index_url)

        logger.info(f"Downloading {form_type} for {ticker}: {document_url}")
        html = self.download(document_url)

        text = self.clean_filing_html(html)
        text = self.extract_narrative_section(text)
        text = self.truncate(text)

        logger.info(f"Prepared {len(text)} characters of {form_type} text "
                    f"for {ticker}")

        return EdgarFiling(ticker=ticker,
                           form_type=form_type,
                           index_url=index_url,
                           document_url=document_url,
                           text_content=text,
                           filing_date=filing_date)

    def get_filing_preview(self, ticker: str) -> str:
        """Return the first part of the cleaned filing text"""
        text = self.fetch_latest_filing(ticker).text_content
        if len(text) > PREVIEW_LENGTH:
            return text[:PREVIEW_LENGTH] + "\n\n... (truncated)"
        return text

    def find_filing_index_url(self,
                              ticker: str) -> Tuple[str, Optional[str]]:
        """
        Find the filing index page of the latest matching filing

        Each filing type's listing is retried on network failure before the
        next type is tried. A listing that loads but has no matching row
        moves straight on to the next type.

        Args:
            ticker: Company ticker symbol

        Returns:
            Tuple of (index page URL, filing date or None)
        """
        for form_type in FILING_TYPES:
            listing_url = LISTING_URL_TEMPLATE.format(ticker=ticker,
                                                      form_type=form_type)
            try:
                html = retry_with_backoff(
                    lambda: self._get(listing_url,
                                      self.config.edgar_listing_timeout),
                    max_attempts=LISTING_ATTEMPTS,
                    base_delay=self.config.edgar_retry_delay,
                    retry_on=(requests.RequestException, ),
                    jitter=False,
                    sleep=self._sleep)
            except requests.RequestException as e:
                logger.warning(
                    f"Listing for {ticker} {form_type} failed after "
                    f"{LISTING_ATTEMPTS} attempts: {e}")
                continue

            found = self._parse_listing(html, form_type)
            if found:
                logger.info(f"Found {form_type} index for {ticker}: {found[0]}")
                return found

            logger.info(f"No {form_type} filings listed for {ticker}")

        raise FilingNotFound(ticker)

    def find_primary_document_url(self, index_url: str) -> Tuple[str, str]:
        """
        Find the primary document link on a filing index page

        Args:
            index_url: Filing index page URL

        Returns:
            Tuple of (document URL, form type)
        """
        html = self._get(index_url, self.config.edgar_listing_timeout)
        soup = BeautifulSoup(html, "html.parser")

        for row in soup.select("table.tableFile tr"):
            cells = row.find_all("td")
            if len(cells) < 4:
                continue

            form_type = cells[3].get_text(strip=True)
            if form_type not in FILING_TYPES:
                continue

            link = cells[2].find("a", href=True)
            if link is None:
                continue

            href = link["href"].replace("/ix?doc=", "")
            return urljoin(index_url, href), form_type

        raise DocumentParseError(
            f"Could not find primary document link in {index_url}")

    def download(self, url: str) -> str:
        """Download a filing document"""
        return self._get(url, self.config.edgar_download_timeout)

    def clean_filing_html(self, html: str) -> str:
        """
        Strip markup from a filing while keeping tables readable

        Args:
            html: Raw filing HTML

        Returns:
            Plain text with tables rendered as pipe-delimited rows
        """
        soup = BeautifulSoup(html, "html.parser")

        for tag in soup.find_all(NON_TEXT_TAGS):
            if not tag.decomposed:
                tag.decompose()

        for table in soup.find_all("table"):
            # Nested tables are rendered as part of their outer table
            if table.find_parent("table") is not None:
                continue
            table.replace_with(NavigableString(self._table_to_text(table)))

        text = soup.get_text(" ")
        text = re.sub(r"\s+", " ", text)

        text = text.replace(NEWLINE_MARKER, "\n")
        text = text.replace(TABLE_START_MARKER, "\n\n")
        text = text.replace(TABLE_END_MARKER, "\n\n")

        text = re.sub(r" *\n *", "\n", text)
        text = re.sub(r"\n{3,}", "\n\n", text)

        return text.strip()

    def extract_narrative_section(self, text: str) -> str:
        """
        Cut the text down to the MD&A section

        The last occurrence is used so table-of-contents entries are skipped.
        """
        for keywords in SECTION_KEYWORDS:
            position = max(text.rfind(keyword) for keyword in keywords)
            if position != -1:
                logger.info(f"Located narrative section via '{keywords[0]}' "
                            f"at offset {position}")
                return text[position:]

        logger.warning(
            "Could not locate MD&A section, using full filing text")
        return text

    def truncate(self, text: str) -> str:
        """Apply the character ceiling to filing text"""
        max_chars = self.config.edgar_max_chars
        if len(text) > max_chars:
            logger.info(f"Truncating filing text from {len(text)} to "
                        f"{max_chars} characters")
            return text[:max_chars] + TRUNCATION_NOTICE
        return text

    def _get(self, url: str, timeout: float) -> str:
        response = self.session.get(url, timeout=timeout)
        response.raise_for_status()
        return response.text

    def _parse_listing(self, html: str,
                       form_type: str) -> Optional[Tuple[str, Optional[str]]]:
        """Return the index link and filing date of the first matching row"""
        soup = BeautifulSoup(html, "html.parser")

        for row in soup.select("table.tableFile2 tr"):
            cells = row.find_all("td")
            if not cells or cells[0].get_text(strip=True) != form_type:
                continue

            link = row.find("a", href=True)
            if link is None:
                continue

            filing_date = cells[3].get_text(strip=True) if len(cells) > 3 else None
            return urljoin(SEC_BASE_URL, link["href"]), filing_date

        return None

    @staticmethod
    def _table_to_text(table) -> str:
        """Render a table as pipe-delimited rows wrapped in placeholders"""
        rows: List[List[str]] = []
        for tr in table.find_all("tr"):
            # Rows of nested tables are already part of an outer cell's text
            if tr.find_parent("table") is not table:
                continue
            cells = [
                re.sub(r"\s+", " ", cell.get_text(" ",
                                                  strip=True)).replace("|", "/")
                for cell in tr.find_all(["td", "th"])
                if cell.find_parent("tr") is tr
            ]
            if any(cells):
                rows.append(cells)

        if not rows:
            return " "

        width = max(len(row) for row in rows)
        parts = [TABLE_START_MARKER]
        for i, row in enumerate(rows):
            padded = row + [""] * (width - len(row))
            parts.append("| " + " | ".join(padded) + " |" + NEWLINE_MARKER)
            if i == 0:
                parts.append("|" + "---|" * width + NEWLINE_MARKER)
        parts.append(TABLE_END_MARKER)

        return "".join(parts)
