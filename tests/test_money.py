from decimal import Decimal

from storefront.money import Money, ZERO


def test_of_rounds_half_up_to_the_cent():
    assert Money.of("10.005").cents == 1001
    assert Money.of("10.004").cents == 1000
    assert Money.of(9.99).cents == 999
    assert Money.of(0).cents == 0


def test_repeated_addition_does_not_drift():
    total = Money.sum(Money.of(0.1) for _ in range(10))
    assert total == Money.of(1)
    assert total.format() == "1.00"


def test_times_and_add():
    assert (Money.of(10).times(2) + Money.of(5)).format() == "25.00"
    assert (Money.of(5) - Money.of(1.5)).cents == 350


def test_apply_rate_half_up():
    assert Money.of(1).apply_rate("0.005").cents == 1
    assert Money.of(3).apply_rate("0.005").cents == 2
    assert Money.of("0.10").apply_rate("0.05").cents == 1
    assert Money.of(25).apply_rate(0.08).cents == 200


def test_formatting():
    assert Money(3699).format() == "36.99"
    assert str(Money(5)) == "$0.05"
    assert Money(1234).amount == Decimal("12.34")
    assert Money(1234).to_float() == 12.34
    assert not ZERO
