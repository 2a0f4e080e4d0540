import pytest
from hypothesis import given, strategies as st

from nl import Bits, Function, Null, Set, SourceLocation, encode, eval_source


bits = st.text(alphabet="01", max_size=40).map(Bits.from_binary)
sets = st.dictionaries(bits, bits, max_size=8).map(Set)


class TestBits:
    def test_packing_is_msb_first(self):
        assert Bits.from_binary("101").data == bytes([0b10100000])
        assert Bits.from_binary("101").length == 3

    def test_bytes_are_eight_bits_each(self):
        value = Bits.new(b"ab")
        assert value.length == 16
        assert value.binary == "0110000101100010"

    def test_length_must_match_byte_count(self):
        with pytest.raises(ValueError):
            Bits(b"\x00\x00", 3)

    def test_iterates_bits_in_order(self):
        assert list(Bits.from_binary("1001")) == [1, 0, 0, 1]

    def test_equality_includes_length(self):
        assert Bits.from_binary("1") != Bits.from_binary("10")
        assert Bits.from_binary("10") == Bits.from_binary("10")

    def test_printed_form(self):
        assert str(Bits.from_binary("0110")) == "`0110`"
        assert str(Bits(b"", 0)) == "``"

    @given(bits, bits, bits)
    def test_concat_is_associative(self, a, b, c):
        assert a.concat(b).concat(c) == a.concat(b.concat(c))

    @given(bits, bits)
    def test_concat_lengths_add(self, a, b):
        joined = a.concat(b)
        assert joined.length == a.length + b.length
        assert joined.binary == a.binary + b.binary

    @given(st.data())
    def test_slice_is_contiguous_window(self, data):
        value = data.draw(bits)
        stop = data.draw(st.integers(min_value=0, max_value=value.length))
        start = data.draw(st.integers(min_value=0, max_value=stop))
        window = value.slice(start, stop)
        assert window.length == stop - start
        assert window.binary == value.binary[start:stop]


class TestSet:
    def test_missing_key_is_null(self):
        assert Set().get(encode(0)) == Null()

    def test_merge_is_right_biased(self):
        left = Set({encode(0): encode(1)})
        right = Set({encode(0): encode(2)})
        assert left.merge(right).get(encode(0)) == encode(2)

    def test_merge_keeps_left_order(self):
        a, b, c = encode(0), encode(1), encode(2)
        merged = Set({a: a, b: b}).merge(Set({c: c, a: c}))
        assert list(merged.data.keys()) == [a, b, c]
        assert merged.get(a) == c

    def test_merge_does_not_modify_operands(self):
        left = Set({encode(0): encode(1)})
        right = Set({encode(1): encode(2)})
        left.merge(right)
        assert len(left) == 1
        assert len(right) == 1

    def test_keyset(self):
        a, b = Bits.new(b"a"), Bits.new(b"b")
        keys = Set({a: Null(), b: Null()}).keyset()
        assert list(keys.data.items()) == [(encode(0), a), (encode(1), b)]

    def test_equal_sets_hash_equal(self):
        a, b = encode(0), encode(1)
        left = Set({a: a, b: b})
        right = Set({b: b, a: a})
        assert left == right
        assert hash(left) == hash(right)

    def test_printed_form(self):
        assert str(Set()) == "{}"
        assert str(Set({encode(1): Null()})) == "{`1`=null}"

    @given(sets)
    def test_merge_with_itself_is_identity(self, a):
        assert a.merge(a) == a

    @given(sets, sets)
    def test_merge_prefers_right_operand(self, a, b):
        merged = a.merge(b)
        for key, value in b.data.items():
            assert merged.get(key) == value
        for key, value in a.data.items():
            if key not in b:
                assert merged.get(key) == value


class TestFunction:
    def test_functions_compare_by_identity(self):
        f = eval_source("x:$x")
        g = eval_source("x:$x")
        assert isinstance(f, Function)
        assert f == f
        assert f != g

    def test_printed_form_names_location(self):
        f = eval_source("\nx:$x", None, SourceLocation("prog.nl", 1))
        assert str(f) == "function@[prog.nl, line 2]"
        assert str(eval_source("x:$x")) == "function"
