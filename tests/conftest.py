"""
Shared fixtures for TracePlan tests.
"""

import json
from unittest.mock import Mock

import pytest


def _har_entry(method, url, headers=None, body=None, status=200,
               mime_type='application/json', response_text='{"ok": true}'):
    request = {
        'method': method,
        'url': url,
        'headers': [{'name': k, 'value': v} for k, v in (headers or {}).items()],
    }
    if body is not None:
        request['postData'] = {'mimeType': 'application/json', 'text': body}
    return {
        'request': request,
        'response': {
            'status': status,
            'content': {'mimeType': mime_type, 'text': response_text},
        },
    }


def _make_har(*entries):
    return json.dumps({'log': {'version': '1.2', 'entries': list(entries)}}).encode('utf-8')


def _story(story_id, *case_ids, title=None):
    return {
        'id': story_id,
        'title': title or f"Story {story_id}",
        'description': f"Covers {story_id}",
        'testCases': [
            {
                'id': case_id,
                'title': f"Case {case_id}",
                'steps': ['Send request'],
                'expectedResult': 'OK',
                'apiDetails': {
                    'method': 'GET',
                    'endpoint': 'https://api.example.com/api/users',
                    'headers': {},
                    'body': '',
                    'expectedStatus': 200,
                },
            }
            for case_id in case_ids
        ],
    }


@pytest.fixture
def har_entry():
    """Factory for a single HAR entry."""
    return _har_entry


@pytest.fixture
def make_har():
    """Factory for HAR document bytes from entries."""
    return _make_har


@pytest.fixture
def make_story():
    """Factory for a wire-format story with test cases."""
    return _story


@pytest.fixture
def sample_har(har_entry, make_har):
    """HAR with API calls, a duplicate, a static asset and analytics traffic."""
    return make_har(
        har_entry('GET', 'https://api.example.com/api/users?page=1',
                  headers={'Authorization': 'Bearer abc', 'User-Agent': 'Mozilla/5.0'}),
        har_entry('GET', 'https://api.example.com/api/users?page=2'),
        har_entry('POST', 'https://api.example.com/api/users',
                  headers={'Content-Type': 'application/json'},
                  body='{"name": "Ada"}', status=201),
        har_entry('GET', 'https://api.example.com/static/app.js', mime_type='application/javascript'),
        har_entry('POST', 'https://www.google-analytics.com/g/collect'),
        har_entry('DELETE', 'https://api.example.com/api/users/42', status=204,
                  mime_type='', response_text=''),
    )


@pytest.fixture
def postman_v2_nested():
    """Postman v2.1 collection with one request inside a nested folder."""
    return {
        'info': {
            'name': 'Orders',
            'schema': 'https://schema.getpostman.com/json/collection/v2.1.0/collection.json',
        },
        'item': [
            {
                'name': 'Orders',
                'item': [
                    {
                        'name': 'Drafts',
                        'item': [
                            {
                                'name': 'Create order',
                                'request': {
                                    'method': 'POST',
                                    'url': {'raw': 'https://api.example.com/api/orders'},
                                    'header': [
                                        {'key': 'Content-Type', 'value': 'application/json'},
                                        {'key': 'X-Debug', 'value': '1', 'disabled': True},
                                    ],
                                    'body': {'mode': 'raw', 'raw': '{"item": "book"}'},
                                },
                            }
                        ],
                    }
                ],
            }
        ],
    }


@pytest.fixture
def story_reply(make_story):
    """Factory for a model reply carrying stories."""
    def _reply(*stories):
        return json.dumps({'stories': list(stories)})
    return _reply


@pytest.fixture
def mock_client():
    """Chat client double; set complete.side_effect per test."""
    client = Mock()
    client.model = 'gpt-4o'
    return client
