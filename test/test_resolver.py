"""Tests for the default document resolver."""

import json
import os
import sys
import tempfile
import unittest
from unittest.mock import MagicMock, patch

import requests

current_script_path = os.path.abspath(__file__)
project_root = os.path.dirname(os.path.dirname(current_script_path))
sys.path.append(project_root)

from schemaguard.errors import LoadError
from schemaguard.resolver import DocumentResolver, file_uri
from schemaguard.schemaloader import load_schema


def mock_response(text, status_code=200):
    response = MagicMock()
    response.text = text
    response.status_code = status_code
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Client Error")
    return response


class TestDocumentResolver(unittest.TestCase):
    """Fetching and caching referenced documents."""

    def test_registered_documents_are_not_fetched(self):
        resolver = DocumentResolver({"http://example.com/a.json#": {"type": "string"}})
        with patch('schemaguard.resolver.requests.get') as get:
            self.assertEqual(resolver("http://example.com/a.json"), {"type": "string"})
            get.assert_not_called()

    @patch('schemaguard.resolver.requests.get')
    def test_http_fetch_is_cached(self, get):
        get.return_value = mock_response('{"type": "integer"}')
        resolver = DocumentResolver(timeout=5)
        self.assertEqual(resolver("https://example.com/id.json#/x"), {"type": "integer"})
        self.assertEqual(resolver("https://example.com/id.json"), {"type": "integer"})
        get.assert_called_once_with("https://example.com/id.json", timeout=5)

    @patch('schemaguard.resolver.requests.get')
    def test_http_error(self, get):
        get.return_value = mock_response('not found', 404)
        with self.assertRaises(requests.HTTPError):
            DocumentResolver()("https://example.com/missing.json")

    @patch('schemaguard.resolver.requests.get')
    def test_invalid_json(self, get):
        get.return_value = mock_response('{"type": ')
        with self.assertRaises(ValueError) as ctx:
            DocumentResolver()("https://example.com/broken.json")
        self.assertIn("Error decoding JSON from https://example.com/broken.json", str(ctx.exception))

    def test_file_uri_and_plain_path(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, 'doc.json')
            with open(path, 'w', encoding='utf-8') as f:
                json.dump({"enum": [1, 2]}, f)
            self.assertEqual(DocumentResolver()(file_uri(path)), {"enum": [1, 2]})
            self.assertEqual(DocumentResolver()(path), {"enum": [1, 2]})

    def test_unsupported_scheme(self):
        with self.assertRaises(NotImplementedError):
            DocumentResolver()("ftp://example.com/a.json")


class TestLoadingWithResolver(unittest.TestCase):
    """The resolver plugged into the loader."""

    @patch('schemaguard.resolver.requests.get')
    def test_remote_reference(self, get):
        get.return_value = mock_response('{"definitions": {"zip": {"pattern": "^[0-9]{5}$"}}}')
        schema = load_schema({"properties": {"zip": {"$ref": "https://example.com/common.json#/definitions/zip"}}},
                             DocumentResolver())
        self.assertEqual(schema.properties["zip"].pattern.pattern, "^[0-9]{5}$")

    @patch('schemaguard.resolver.requests.get')
    def test_remote_failure_becomes_load_error(self, get):
        get.side_effect = requests.ConnectionError("connection refused")
        with self.assertRaises(LoadError) as ctx:
            load_schema({"items": {"$ref": "https://example.com/item.json"}}, DocumentResolver())
        self.assertEqual(ctx.exception.pointer_to_violation, "#/items/$ref")
        self.assertIsInstance(ctx.exception.__cause__, requests.ConnectionError)


if __name__ == '__main__':
    unittest.main()
