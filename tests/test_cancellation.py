"""
Cooperative cancellation: OperationContext semantics and rollback of
multi-step writes interrupted mid-way.
"""

import itertools

import pytest

from sales_core.cancellation import OperationContext, check_context
from sales_core.domain.models import Quotation, SalesProcess
from sales_core.errors import OperationAbortedError, OperationCancelledError, OperationTimeoutError

from conftest import line_items


def ticking_clock(start=0.0):
    """Monotonic stand-in that advances one second per call."""
    counter = itertools.count(start)
    return lambda: float(next(counter))


class TestOperationContext:
    def test_no_deadline(self):
        ctx = OperationContext()
        assert ctx.deadline is None
        ctx.check("anything")
        check_context(None, "no context")

    def test_cancel(self):
        ctx = OperationContext()
        ctx.cancel()
        assert ctx.cancelled
        with pytest.raises(OperationCancelledError) as exc_info:
            ctx.check("step 1")
        assert exc_info.value.stage == "step 1"

    def test_timeout(self):
        ctx = OperationContext(timeout=1.5, clock=ticking_clock())
        assert ctx.deadline == 1.5
        ctx.check("first")  # clock reads 1.0
        with pytest.raises(OperationTimeoutError):
            ctx.check("second")  # clock reads 2.0

    def test_cancel_wins_over_timeout(self):
        ctx = OperationContext(timeout=0, clock=ticking_clock())
        ctx.cancel()
        with pytest.raises(OperationCancelledError):
            ctx.check("both fired")

    def test_both_are_aborts(self):
        assert issubclass(OperationCancelledError, OperationAbortedError)
        assert issubclass(OperationTimeoutError, OperationAbortedError)


def quotation_rows(store):
    return store.scalar("SELECT COUNT(*) FROM quotations"), store.scalar("SELECT COUNT(*) FROM quotation_items")


class TestInterruptedWrites:
    def test_cancelled_before_start(self, repos, store):
        ctx = OperationContext()
        ctx.cancel()
        with pytest.raises(OperationCancelledError) as exc_info:
            repos.quotations.create(Quotation(items=line_items(1, 2)), ctx=ctx)
        assert exc_info.value.stage == "before transaction"
        assert quotation_rows(store) == (0, 0)

    def test_timeout_during_items_rolls_back_everything(self, repos, store):
        # clock reads: 0 at construction, 1 before BEGIN, 2 after BEGIN, 3 at the first item
        ctx = OperationContext(timeout=2.5, clock=ticking_clock())
        with pytest.raises(OperationTimeoutError) as exc_info:
            repos.quotations.create(Quotation(items=line_items(1, 2, 3)), ctx=ctx)
        assert exc_info.value.stage == "quotation item 1/3"
        assert quotation_rows(store) == (0, 0)

        # the sequence draw was rolled back with the rest
        created = repos.quotations.create(Quotation())
        assert created.quotation_no == "QT-2026-000001"

    def test_interrupted_update_keeps_previous_items(self, repos, make_quotation):
        quotation = make_quotation(items=line_items(1, 2))
        original_ids = [item.id for item in quotation.items]

        # times out at the second replacement item
        ctx = OperationContext(timeout=3.5, clock=ticking_clock())
        quotation.items = line_items(7, 8, 9)
        quotation.notes = "revised"
        with pytest.raises(OperationTimeoutError) as exc_info:
            repos.quotations.update(quotation.id, quotation, ctx=ctx)
        assert exc_info.value.stage == "quotation item 2/3"

        reloaded = repos.quotations.get_by_id(quotation.id)
        assert [item.id for item in reloaded.items] == original_ids
        assert [item.quantity for item in reloaded.items] == [1, 2]
        assert reloaded.notes == ""

    def test_cancelled_process_delete_keeps_links(self, repos, make_delivery):
        process = repos.processes.create(SalesProcess())
        delivery = make_delivery()
        repos.processes.link_delivery(process.id, delivery.id)

        ctx = OperationContext()
        ctx.cancel()
        with pytest.raises(OperationCancelledError):
            repos.processes.delete(process.id, ctx=ctx)

        assert repos.processes.get_by_id(process.id).delivery_ids == [delivery.id]
