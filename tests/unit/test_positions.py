"""
test_positions.py - Unit tests for PositionBook
"""

import pytest

from dsc import PositionBook, InsufficientCollateral, InsufficientDebt


@pytest.fixture
def book():
    book = PositionBook()
    book.add_collateral("alice", "WETH", 10)
    book.add_debt("alice", 4)
    return book


class TestReads:

    def test_unknown_account_reads_zero(self):
        book = PositionBook()
        assert book.collateral_of("nobody", "WETH") == 0
        assert book.debt_of("nobody") == 0
        assert book.collateral_map("nobody") == {}
        assert book.accounts() == []

    def test_totals(self, book):
        book.add_collateral("bob", "WETH", 5)
        book.add_collateral("bob", "WBTC", 1)
        book.add_debt("bob", 2)
        assert book.total_collateral("WETH") == 15
        assert book.total_debt() == 6
        assert book.accounts() == ["alice", "bob"]
        assert book.collateral_map("bob") == {"WETH": 5, "WBTC": 1}


class TestMutations:

    def test_add_and_remove(self, book):
        assert book.add_collateral("alice", "WETH", 5) == 15
        assert book.remove_collateral("alice", "WETH", 15) == 0
        assert book.remove_debt("alice", 4) == 0

    def test_remove_collateral_underflow(self, book):
        with pytest.raises(InsufficientCollateral) as exc_info:
            book.remove_collateral("alice", "WETH", 11)
        assert exc_info.value.requested == 11
        assert exc_info.value.available == 10
        assert book.collateral_of("alice", "WETH") == 10

    def test_remove_debt_underflow(self, book):
        with pytest.raises(InsufficientDebt):
            book.remove_debt("alice", 5)
        assert book.debt_of("alice") == 4


class TestJournal:

    def test_rollback_restores_exactly(self, book):
        mark = book.begin()
        book.add_collateral("alice", "WETH", 3)
        book.remove_collateral("alice", "WETH", 13)
        book.add_debt("alice", 100)
        book.add_collateral("bob", "WBTC", 1)
        assert book.rollback(mark) == 4
        assert book.collateral_of("alice", "WETH") == 10
        assert book.debt_of("alice") == 4
        assert book.collateral_of("bob", "WBTC") == 0

    def test_commit_keeps_changes(self, book):
        mark = book.begin()
        book.add_debt("alice", 1)
        book.commit(mark)
        assert book.rollback(mark) == 0
        assert book.debt_of("alice") == 5

    def test_nested_marks(self, book):
        outer = book.begin()
        book.add_debt("alice", 1)
        inner = book.begin()
        book.add_debt("alice", 1)
        book.rollback(inner)
        assert book.debt_of("alice") == 5
        book.rollback(outer)
        assert book.debt_of("alice") == 4
