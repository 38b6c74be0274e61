"""
Arrivals board client.

Fetches the raw HTML arrivals board from the airport's flight
information site. The site rejects requests without a browser-like
identity, so every request carries spoofed User-Agent/Accept headers.

Single attempt per call: no retries here. The pipeline decides what
to do on failure (fall back to mock data).
"""

import logging
from typing import Optional

import requests

from arriva.config import BoardConfig
from arriva.errors import FetchError

logger = logging.getLogger(__name__)


class BoardClient:
    """
    Client for the arrivals board page.

    Handles:
    - GET of the fixed board URL
    - Browser-like request headers
    - Bounded timeout, mapped to FetchError
    """

    def __init__(
        self,
        board: Optional[BoardConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.board = board or BoardConfig()
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': self.board.user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
        })

    def fetch_board(self) -> str:
        """
        Fetch the arrivals board document.

        Returns:
            Raw document text

        Raises:
            FetchError on network errors, timeouts and non-2xx responses
        """
        logger.debug(f'Fetching arrivals board: {self.board.url}')

        try:
            response = self.session.get(
                self.board.url,
                timeout=self.board.timeout_seconds,
            )
        except requests.exceptions.Timeout as e:
            logger.error('Arrivals board timeout')
            raise FetchError(f'Board request timed out: {e}') from e
        except requests.exceptions.RequestException as e:
            logger.error(f'Arrivals board request failed: {e}')
            raise FetchError(f'Board request failed: {e}') from e

        if not response.ok:
            logger.error(f'Arrivals board error: {response.status_code}')
            raise FetchError(
                f'Failed to fetch: {response.status_code}',
                status_code=response.status_code,
            )

        logger.info(f'Fetched arrivals board ({len(response.text)} chars)')
        return response.text
