"""
Unit tests for order list action gating and ListState.
"""
import pytest

from hospitalization.exceptions import OrderLockedError
from hospitalization.listing import READ_ONLY_NOTICE, ListState, ensure_order_mutable, order_actions


class TestOrderActions:

    @pytest.mark.parametrize('status', ['1', '2'])
    def test_editable_class(self, status):
        assert order_actions(status) == {'edit': True, 'delete': True, 'print': True}

    @pytest.mark.parametrize('status', ['0', '3', '9', '', None])
    def test_other_statuses_print_only(self, status):
        assert order_actions(status) == {'edit': False, 'delete': False, 'print': True}


class TestEnsureOrderMutable:

    def test_open_passes(self):
        ensure_order_mutable('2500000001', '2')

    def test_locked_raises_with_notice(self):
        with pytest.raises(OrderLockedError) as exc_info:
            ensure_order_mutable('2500000001', '3')

        assert exc_info.value.message == READ_ONLY_NOTICE
        assert exc_info.value.detail == {'order_id': '2500000001', 'status': '3'}


class TestListState:

    def test_filter_change_resets_page(self):
        state = ListState(page_size=10, total=55)
        state.set_page(4)

        state.set_filter('J45')

        assert state.page == 1
        assert state.filter_text == 'J45'

    def test_same_filter_keeps_page(self):
        state = ListState(page_size=10, total=55, filter_text='J45')
        state.set_page(3)

        state.set_filter('J45')

        assert state.page == 3

    def test_total_pages(self):
        assert ListState(page_size=10, total=0).total_pages == 1
        assert ListState(page_size=10, total=10).total_pages == 1
        assert ListState(page_size=10, total=11).total_pages == 2

    def test_page_clamped(self):
        state = ListState(page_size=10, total=25)
        state.set_page(99)
        assert state.page == 3
        state.set_page(0)
        assert state.page == 1

    def test_shrinking_total_clamps_page(self):
        state = ListState(page_size=10, total=50)
        state.set_page(5)
        state.update_total(12)
        assert state.page == 2

    def test_params(self):
        state = ListState(page=2, page_size=5, filter_text='asma')
        assert state.params() == {'page': 2, 'pageSize': 5, 'search': 'asma'}
