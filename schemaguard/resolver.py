"""Default reference resolver for documents outside the root schema.

Serves pre-registered documents, fetches http(s) URLs with `requests` and reads
file URLs or plain paths from disk. Every document is decoded once per URI.
"""

import json
import logging
import os
import urllib.parse
from typing import Any, Dict, Optional
from urllib.parse import ParseResult, urldefrag, urlparse

import requests

logger = logging.getLogger(__name__)


def file_uri(path: str) -> str:
    """The file URI of a local path, usable as a loader base URI."""
    return f'file://{os.path.abspath(path)}'


class DocumentResolver:
    """Callable `$ref` resolver: document URI in, decoded JSON document out.

    Attributes:
        documents: Decoded documents by URI; pre-registered ones are never fetched
        timeout: HTTP timeout in seconds
    """

    def __init__(self, documents: Optional[Dict[str, Any]] = None, timeout: int = 30) -> None:
        self.documents: Dict[str, Any] = {}
        for uri, document in (documents or {}).items():
            self.documents[urldefrag(uri)[0]] = document
        self.timeout = timeout

    def __call__(self, uri: str) -> Any:
        uri = urldefrag(uri)[0]
        if uri in self.documents:
            return self.documents[uri]
        content = self.fetch_content(uri)
        try:
            document = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f'Error decoding JSON from {uri}: {e}') from e
        self.documents[uri] = document
        return document

    def fetch_content(self, url: str | ParseResult) -> str:
        """
        Fetches the content from the specified URL.

        Args:
            url (str or ParseResult): The URL to fetch the content from.

        Returns:
            str: The fetched content.

        Raises:
            requests.RequestException: If there is an error while making the HTTP request.
            OSError: If there is an error while reading the file.
            NotImplementedError: If the URL scheme is not supported.
        """
        parsed_url = urlparse(url) if isinstance(url, str) else url
        scheme = parsed_url.scheme

        if scheme in ['http', 'https']:
            logger.debug("Fetching %s", parsed_url.geturl())
            response = requests.get(parsed_url.geturl(), timeout=self.timeout)
            # Raises an HTTPError if the response status code is 4XX/5XX
            response.raise_for_status()
            return response.text

        if scheme in ['file', '']:
            file_path = parsed_url.path
            if scheme == 'file' and parsed_url.netloc:
                file_path = parsed_url.netloc + parsed_url.path
            # On Windows, a file URL might start with a '/' but it's not part of the actual path
            if os.name == 'nt' and scheme == 'file' and file_path.startswith('/'):
                file_path = file_path[1:]
            logger.debug("Reading %s", file_path)
            with open(urllib.parse.unquote(file_path), 'r', encoding='utf-8') as file:
                return file.read()

        raise NotImplementedError(f'Unsupported URL scheme: {scheme}')
