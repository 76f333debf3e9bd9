from __future__ import annotations

from kungfu import Ok, Error, LazyCoroResult

from ordercore import ErrorKind, rupees, saga as S
from ordercore.models import Address, CartSnapshot, PaymentMethod
from ordercore.orders import OrderService
from ordercore.store import MemoryStore, StoreError
from ordercore.wallet import WalletLedger

from _support import CASE, PHONE, SAVE20, cart_line, expect_error, expect_ok, fixed_clock, stock_of, balance_of


# ═══════════════════════════════════════════════════════════════════════════════
# Interpreter
# ═══════════════════════════════════════════════════════════════════════════════


class Recorder:
    def __init__(self) -> None:
        self.events: list[str] = []

    def step(self, name: str, fail: bool = False) -> S.SagaStep[str, str]:
        async def action():
            if fail:
                return Error(f"{name} failed")
            self.events.append(f"do {name}")
            return Ok(name)

        async def undo(value: str) -> None:
            self.events.append(f"undo {value}")

        return S.step(LazyCoroResult(action), compensate=undo)


async def test_success_runs_every_step():
    rec = Recorder()

    result = expect_ok(await S.run(rec.step("a").then(lambda _: rec.step("b"))))

    assert result.value == "b"
    assert result.steps_executed == 2
    assert result.compensators_recorded == 2
    assert rec.events == ["do a", "do b"]


async def test_failure_compensates_in_reverse():
    rec = Recorder()
    saga = S.sequence(rec.step("a"), rec.step("b")).then(lambda _: rec.step("c", fail=True))

    match await S.run(saga):
        case Ok(_):
            raise AssertionError("saga should fail")
        case Error(failure):
            pass

    assert failure.error == "c failed"
    assert failure.compensators_run == 2
    assert failure.rollback_complete
    assert rec.events == ["do a", "do b", "undo b", "undo a"]


async def test_failed_compensator_is_counted():
    async def broken(_: str) -> None:
        raise S.CompensationFailed("cannot undo")

    rec = Recorder()
    saga = S.from_result(lambda: _ok("x"), compensate=broken).then(
        lambda _: rec.step("y", fail=True)
    )

    match await S.run(saga):
        case Error(failure):
            assert failure.compensators_failed == 1
            assert not failure.rollback_complete
        case Ok(_):
            raise AssertionError("saga should fail")


async def test_from_async_maps_exceptions():
    async def explode() -> str:
        raise RuntimeError("gateway down")

    match await S.run(S.from_async(explode, on_error=lambda e: str(e))):
        case Error(failure):
            assert failure.error == "gateway down"
        case Ok(_):
            raise AssertionError("saga should fail")


async def _ok(value: str):
    return Ok(value)


# ═══════════════════════════════════════════════════════════════════════════════
# Placement rollback
# ═══════════════════════════════════════════════════════════════════════════════


class FailingInsertStore(MemoryStore):
    async def insert_order(self, order):
        return Error(StoreError("disk full"))


async def test_failed_persist_releases_stock_coupon_and_money(settings, user):
    store = FailingInsertStore()
    for product in (PHONE, CASE):
        expect_ok(await store.save_product(product))
    expect_ok(await store.insert_coupon(SAVE20))
    expect_ok(await store.save_address(Address(id="addr-u1", user_id="u1")))
    expect_ok(await WalletLedger(store, fixed_clock).deposit("u1", rupees(10000)))
    orders = OrderService(store, settings, clock=fixed_clock)
    cart = CartSnapshot("u1", (cart_line(PHONE, "v-black", 2), cart_line(CASE, "v-red", 1)), "SAVE20")

    error = expect_error(await orders.place_order(user, cart, "addr-u1", PaymentMethod.WALLET))

    assert error.kind is ErrorKind.STORAGE
    assert await stock_of(store, "p-phone", "v-black") == 10
    assert await stock_of(store, "p-case", "v-red") == 10
    assert expect_ok(await store.get_coupon("SAVE20")).usage_count == 0
    assert await balance_of(store, "u1") == rupees(10000)
