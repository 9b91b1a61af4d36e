import pytest

from integrations.exceptions import ApiTransientError
from integrations.mock_provider import MockShopifyClient, seed_mock
from integrations.pagination import PaginatedResourceFetcher


class PagedSource:
    def __init__(self, sizes, fail_on_page=None):
        self.sizes = list(sizes)
        self.fail_on_page = fail_on_page
        self.cursors = []
        self.next_id = 1

    def __call__(self, limit, since_id):
        self.cursors.append(since_id)
        page_no = len(self.cursors)
        if page_no == self.fail_on_page:
            raise ApiTransientError('Server error 502: bad gateway', 502)
        size = self.sizes[page_no - 1] if page_no <= len(self.sizes) else 0
        page = [{'id': self.next_id + i} for i in range(size)]
        self.next_id += size
        return page


def test_stops_after_short_page():
    source = PagedSource([50, 50, 20])
    result = PaginatedResourceFetcher(source).fetch_all(page_size=50)
    assert result.total == 120
    assert result.pages == 3
    assert result.errors == []
    assert source.cursors == [None, '50', '100']


def test_stops_on_empty_page():
    source = PagedSource([50, 50])
    result = PaginatedResourceFetcher(source).fetch_all(page_size=50)
    assert result.total == 100
    assert len(source.cursors) == 3


def test_page_failure_keeps_partial_result():
    source = PagedSource([50, 50, 50], fail_on_page=2)
    result = PaginatedResourceFetcher(source).fetch_all(page_size=50)
    assert result.total == 50
    assert result.errors == ['Server error 502: bad gateway']


def test_page_ceiling_bounds_runaway_server():
    result = PaginatedResourceFetcher(lambda limit, since_id: [{'id': 1}] * limit, max_pages=5).fetch_all(page_size=10)
    assert result.pages == 5
    assert result.total == 50
    assert len(result.errors) == 1


def test_page_size_must_be_positive():
    with pytest.raises(ValueError):
        PaginatedResourceFetcher(PagedSource([])).fetch_all(page_size=0)


def test_mock_client_paginates_all_products():
    seed_mock(7)
    client = MockShopifyClient(n_products=23)
    result = client.fetch_all_products(page_size=10)
    assert result.total == 23
    assert len({p['id'] for p in result.items}) == 23


def test_mock_client_respects_page_ceiling():
    seed_mock(7)
    client = MockShopifyClient(n_products=23)
    result = client.fetch_all_products(page_size=10, max_pages=2)
    assert result.pages == 2
    assert result.total == 20
    assert result.errors == ['Stopped after reaching page ceiling (2 pages)']
