import pytest
import requests

from integrations import base_client
from integrations.exceptions import (
    ApiAuthError,
    ApiNetworkError,
    ApiPermanentError,
    ApiRateLimitError,
    ApiRequestError,
    ApiTransientError,
    ShopifyGraphQLError,
)
from integrations.shopify_client import ShopifyClient, extract_shop_name, validate_shop_domain


class FakeResponse:
    def __init__(self, status_code=200, body=None, headers=None):
        self.status_code = status_code
        self._body = body if body is not None else {}
        self.headers = {'Content-Type': 'application/json', **(headers or {})}
        self.text = str(self._body)

    def json(self):
        return self._body


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock(monkeypatch):
    c = FakeClock()
    monkeypatch.setattr(base_client.time, 'monotonic', c.monotonic)
    monkeypatch.setattr(base_client.time, 'sleep', c.sleep)
    return c


def _client(responses, **kwargs):
    client = ShopifyClient('acme.myshopify.com', 'shpat_token', **kwargs)
    client.session = FakeSession(responses)
    return client


def test_requests_are_spaced_by_min_interval(clock):
    client = _client([FakeResponse(body={'shop': {}})] * 3, min_interval=0.5)
    client.get_shop()
    clock.now += 0.2
    client.get_shop()
    client.get_shop()
    assert clock.sleeps == pytest.approx([0.3, 0.5])


def test_no_wait_when_interval_already_elapsed(clock):
    client = _client([FakeResponse(body={'shop': {}})] * 2, min_interval=0.5)
    client.get_shop()
    clock.now += 2
    client.get_shop()
    assert clock.sleeps == []


def test_throttle_is_per_client_instance(clock):
    a = _client([FakeResponse(body={'shop': {}})], min_interval=0.5)
    b = _client([FakeResponse(body={'shop': {}})], min_interval=0.5)
    a.get_shop()
    b.get_shop()
    assert clock.sleeps == []


def test_rps_env_sets_interval(monkeypatch):
    monkeypatch.setenv('SHOPIFY_RPS', '4')
    assert ShopifyClient('acme.myshopify.com', 't').min_interval == 0.25
    monkeypatch.setenv('SHOPIFY_RPS', 'fast')
    assert ShopifyClient('acme.myshopify.com', 't').min_interval == 0.5


def test_auth_header_and_graphql_endpoint(clock):
    client = _client([FakeResponse(body={'data': {'deliverySettings': {'legacyModeProfiles': True}}})], api_version='2024-01')
    assert client.is_legacy_mode() is True
    method, url, kwargs = client.session.requests[0]
    assert method == 'POST'
    assert url == 'https://acme.myshopify.com/admin/api/2024-01/graphql.json'
    assert kwargs['headers']['X-Shopify-Access-Token'] == 'shpat_token'
    assert kwargs['timeout'] == 30
    assert 'deliverySettings' in kwargs['json']['query']


def test_graphql_errors_raise():
    client = _client([FakeResponse(body={'errors': [{'message': 'Access denied for deliveryProfiles'}]})], min_interval=0)
    with pytest.raises(ShopifyGraphQLError) as exc:
        client.get_delivery_profiles()
    assert 'Access denied for deliveryProfiles' in str(exc.value)


@pytest.mark.parametrize('status,expected', [
    (429, ApiRateLimitError),
    (500, ApiTransientError),
    (503, ApiTransientError),
    (401, ApiAuthError),
    (404, ApiPermanentError),
    (422, ApiPermanentError),
])
def test_status_codes_classified(status, expected):
    client = _client([FakeResponse(status_code=status, body={'errors': 'x'})], min_interval=0)
    with pytest.raises(expected) as exc:
        client.get_shop()
    assert exc.value.status_code == status


def test_rate_limit_is_transient_and_not_permanent():
    assert issubclass(ApiRateLimitError, ApiTransientError)
    assert not issubclass(ApiRateLimitError, ApiPermanentError)


def test_network_failure_wrapped():
    client = _client([requests.Timeout('read timed out')], min_interval=0)
    with pytest.raises(ApiNetworkError):
        client.get_shop()


def test_retry_after_honoured_when_retries_enabled(clock):
    client = _client([
        FakeResponse(status_code=429, headers={'Retry-After': '2'}),
        FakeResponse(body={'shop': {'name': 'Acme'}}),
    ], min_interval=0.5, retries=1)
    assert client.get_shop() == {'name': 'Acme'}
    assert len(client.session.requests) == 2
    assert clock.sleeps[0] == 2.0


def test_test_connection_reports_failure():
    client = _client([FakeResponse(status_code=401)], min_interval=0)
    result = client.test_connection()
    assert result['success'] is False
    assert '401' in result['error']


def test_list_products_passes_cursor():
    client = _client([FakeResponse(body={'products': [{'id': 7}]})], min_interval=0)
    assert client.list_products(limit=50, since_id='5', status='active') == [{'id': 7}]
    params = client.session.requests[0][2]['params']
    assert params == {'limit': 50, 'since_id': '5', 'status': 'active'}


def test_create_webhook_body():
    client = _client([FakeResponse(body={'webhook': {'id': 1, 'topic': 'orders/create'}})], min_interval=0)
    assert client.create_webhook('orders/create', 'https://x/api/webhooks/orders')['id'] == 1
    body = client.session.requests[0][2]['json']
    assert body == {'webhook': {'topic': 'orders/create', 'address': 'https://x/api/webhooks/orders', 'format': 'json'}}


def test_shop_domain_helpers():
    assert validate_shop_domain('my-store.myshopify.com')
    assert not validate_shop_domain('my-store.com')
    assert extract_shop_name('my-store.myshopify.com') == 'my-store'


def test_html_body_on_webhook_create_is_an_api_error():
    html = FakeResponse(headers={'Content-Type': 'text/html'})
    html.text = '<html>ok</html>'
    client = _client([html], min_interval=0)
    with pytest.raises(ApiRequestError):
        client.create_webhook('orders/create', 'https://x/api/webhooks/orders')


def test_list_webhooks():
    hooks = [{'id': 1, 'topic': 'orders/create'}, {'id': 2, 'topic': 'products/update'}]
    client = _client([FakeResponse(body={'webhooks': hooks})], min_interval=0)
    assert client.list_webhooks() == hooks
    method, url, _ = client.session.requests[0]
    assert method == 'GET'
    assert url.endswith('/admin/api/2024-01/webhooks.json')


def test_delete_webhook():
    client = _client([FakeResponse(body={})], min_interval=0)
    client.delete_webhook('42')
    method, url, _ = client.session.requests[0]
    assert method == 'DELETE'
    assert url.endswith('/webhooks/42.json')
