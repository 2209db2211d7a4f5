"""Tests for the bitmask rule registry and router."""

import threading

import pytest

from sluice.contracts import BitmaskValueError
from sluice.plugins.routing import MAX_MASK, BitmaskRouter, BitmaskRuleRegistry, parse_integer, parse_mask


class TestParsing:
    @pytest.mark.parametrize(("raw", "expected"), [("0", 0), ("42", 42), ("+7", 7), ("-3", -3), ("007", 7)])
    def test_parse_integer(self, raw: str, expected: int) -> None:
        assert parse_integer(raw) == expected

    @pytest.mark.parametrize("raw", ["", " 1", "1 ", "0x10", "1.0", "one", "1_000", "--1"])
    def test_parse_integer_rejects(self, raw: str) -> None:
        assert parse_integer(raw) is None

    def test_parse_mask_bounds(self) -> None:
        assert parse_mask(0) == 0
        assert parse_mask(str(MAX_MASK)) == MAX_MASK
        with pytest.raises(ValueError):
            parse_mask(MAX_MASK + 1)
        with pytest.raises(ValueError):
            parse_mask(-1)

    def test_parse_mask_rejects_bool_and_text(self) -> None:
        with pytest.raises(ValueError):
            parse_mask(True)
        with pytest.raises(ValueError):
            parse_mask("six")


class TestRegistry:
    def test_register_and_snapshot(self) -> None:
        registry = BitmaskRuleRegistry({"a": 1, "b": "6"})
        assert dict(registry.snapshot()) == {"a": 1, "b": 6}
        assert registry.names() == frozenset({"a", "b"})
        assert len(registry) == 2
        assert "a" in registry

    @pytest.mark.parametrize("name", ["unmatched", "failure", "", "  "])
    def test_reserved_and_blank_names_rejected(self, name: str) -> None:
        with pytest.raises(ValueError):
            BitmaskRuleRegistry().register(name, 1)

    def test_snapshot_is_immutable_view(self) -> None:
        registry = BitmaskRuleRegistry({"a": 1})
        snapshot = registry.snapshot()

        registry.register("b", 2)
        registry.remove("a")

        assert dict(snapshot) == {"a": 1}
        assert dict(registry.snapshot()) == {"b": 2}

    def test_reregister_keeps_position(self) -> None:
        registry = BitmaskRuleRegistry({"a": 1, "b": 2})
        registry.register("a", 4)
        assert list(registry.snapshot()) == ["a", "b"]

    def test_remove_missing_returns_none(self) -> None:
        assert BitmaskRuleRegistry().remove("nope") is None

    def test_update_semantics(self) -> None:
        registry = BitmaskRuleRegistry()
        registry.update("a", None, "3")
        assert registry.snapshot()["a"] == 3
        registry.update("a", "3", "5")
        assert registry.snapshot()["a"] == 5
        registry.update("a", "5", None)
        assert "a" not in registry

    def test_concurrent_writers_lose_nothing(self) -> None:
        registry = BitmaskRuleRegistry()

        def register_range(start: int) -> None:
            for i in range(start, start + 50):
                registry.register(f"r{i}", i)

        threads = [threading.Thread(target=register_range, args=(n * 50,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(registry) == 200


class TestRouter:
    def test_outputs(self) -> None:
        router = BitmaskRouter(BitmaskRuleRegistry({"x": 1}))
        assert router.outputs() == frozenset({"unmatched", "failure", "x"})

    def test_subset_match(self) -> None:
        router = BitmaskRouter(BitmaskRuleRegistry({"low": 0b0011, "high": 0b1100, "mid": 0b0110}))

        decision = router.decide(0b0111)

        assert decision.matched == ("low", "mid")
        assert decision.combined_mask == 0b0111
        assert decision.output_value == 0b0111

    def test_no_match(self) -> None:
        decision = BitmaskRouter(BitmaskRuleRegistry({"a": 8})).decide(7)
        assert not decision.is_match
        assert decision.output_value == 7

    def test_flip_clears_all_matched_bits(self) -> None:
        router = BitmaskRouter(BitmaskRuleRegistry({"a": 0b0001, "b": 0b0100}), flip_bits=True)

        decision = router.decide(0b1101)

        assert decision.matched == ("a", "b")
        assert decision.output_value == 0b1000

    def test_flip_without_match_keeps_value(self) -> None:
        router = BitmaskRouter(BitmaskRuleRegistry({"a": 2}), flip_bits=True)
        assert router.decide(1).output_value == 1

    def test_zero_mask_matches_everything(self) -> None:
        router = BitmaskRouter(BitmaskRuleRegistry({"any": 0}))
        assert router.decide(0).matched == ("any",)

    @pytest.mark.parametrize("raw", [None, "", "abc", " 5"])
    def test_decide_raw_rejects(self, raw: str | None) -> None:
        router = BitmaskRouter(BitmaskRuleRegistry({"a": 1}))
        with pytest.raises(BitmaskValueError) as exc_info:
            router.decide_raw("flags", raw)
        assert exc_info.value.attribute == "flags"
        assert isinstance(exc_info.value, TypeError)

    def test_decide_raw_parses(self) -> None:
        router = BitmaskRouter(BitmaskRuleRegistry({"a": 1}))
        assert router.decide_raw("flags", "3").matched == ("a",)

    @pytest.mark.parametrize("raw", [str(MAX_MASK + 1), str(2**64 + 6), str(-(2**63) - 1)])
    def test_decide_raw_rejects_values_wider_than_64_bits(self, raw: str) -> None:
        router = BitmaskRouter(BitmaskRuleRegistry({"a": 6}))
        with pytest.raises(BitmaskValueError):
            router.decide_raw("flags", raw)

    def test_decide_rejects_values_wider_than_64_bits(self) -> None:
        with pytest.raises(ValueError, match="64 bits"):
            BitmaskRouter().decide(2**64)

    @pytest.mark.parametrize(("raw", "expected"), [(str(MAX_MASK), ("a",)), (str(-(2**63)), ())])
    def test_decide_raw_accepts_64_bit_bounds(self, raw: str, expected: tuple[str, ...]) -> None:
        router = BitmaskRouter(BitmaskRuleRegistry({"a": 6}))
        assert router.decide_raw("flags", raw).matched == expected

    @pytest.mark.parametrize(
        ("value", "mask", "expected"),
        [(-1, 2**63, 2**63 - 1), (-1, 1, -2), (MAX_MASK, 2**63, 2**63 - 1), (-(2**63), 2**63, 0)],
    )
    def test_flip_result_fits_in_64_bits(self, value: int, mask: int, expected: int) -> None:
        router = BitmaskRouter(BitmaskRuleRegistry({"m": mask}), flip_bits=True)
        assert router.decide(value).output_value == expected
