import json

import requests


def make_response(url, status_code=200, body=None, text=None):
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    if text is None:
        text = json.dumps(body)
    response._content = text.encode('utf-8')
    response._content_consumed = True
    response.encoding = 'utf-8'
    return response


class StubSession:
    """Stands in for requests.Session; routes URLs to canned responses or exceptions."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append({'url': url, 'headers': headers, 'timeout': timeout})
        route = self.routes.get(url)
        if route is None:
            return make_response(url, 404, text='not found')
        if isinstance(route, Exception):
            raise route
        if isinstance(route, requests.Response):
            return route
        return make_response(url, 200, body=route)
