from integrations.exceptions import ApiPermanentError
from integrations.webhooks import WEBHOOK_CATALOGUE, provision_all, summarize


class RecordingClient:
    def __init__(self, failing_topics=(), broken_topics=()):
        self.failing_topics = set(failing_topics)
        self.broken_topics = set(broken_topics)
        self.created = []

    def create_webhook(self, topic, address, format='json'):
        if topic in self.failing_topics:
            raise ApiPermanentError('Client error 422: address already taken', 422)
        if topic in self.broken_topics:
            raise KeyError('webhook')
        webhook = {'id': len(self.created) + 1, 'topic': topic, 'address': address, 'format': format}
        self.created.append(webhook)
        return webhook


def test_catalogue_covers_orders_products_inventory():
    assert len(WEBHOOK_CATALOGUE) == 8
    paths = {path for _, path in WEBHOOK_CATALOGUE}
    assert paths == {'/api/webhooks/orders', '/api/webhooks/products', '/api/webhooks/inventory'}


def test_one_failure_does_not_block_others():
    client = RecordingClient(failing_topics={'orders/create'})
    results = provision_all(client, 'https://dash.example.com/')
    assert summarize(results) == {'succeeded': 7, 'failed': 1}
    [failed] = [r for r in results if not r['success']]
    assert failed['topic'] == 'orders/create'
    assert '422' in failed['error']
    assert len(client.created) == 7


def test_unexpected_error_does_not_block_others():
    client = RecordingClient(broken_topics={'orders/create'})
    results = provision_all(client, 'https://dash.example.com')
    assert summarize(results) == {'succeeded': 7, 'failed': 1}
    assert results[0]['topic'] == 'orders/create'
    assert results[0]['error'] == "'webhook'"
    assert [w['topic'] for w in client.created] == [t for t, _ in WEBHOOK_CATALOGUE[1:]]


def test_addresses_built_from_base_url():
    client = RecordingClient()
    results = provision_all(client, 'https://dash.example.com/')
    by_topic = {r['topic']: r['webhook'] for r in results}
    assert by_topic['orders/paid']['address'] == 'https://dash.example.com/api/webhooks/orders'
    assert by_topic['inventory_levels/update']['address'] == 'https://dash.example.com/api/webhooks/inventory'
    assert all(w['format'] == 'json' for w in by_topic.values())


def test_repeated_provisioning_registers_again():
    client = RecordingClient()
    provision_all(client, 'https://dash.example.com')
    provision_all(client, 'https://dash.example.com')
    assert len(client.created) == 16
