import pytest

from ffi_binding_generator.errors import SymbolCollisionError, SymbolEncodingError
from ffi_binding_generator.models import ClassSpec, LONG, NamespacedClass, value, void
from ffi_binding_generator.naming import (
    SymbolRole,
    check_symbol_collisions,
    constructor_symbol,
    copy_symbol,
    destructor_symbol,
    escaped_path,
    member_symbol,
    method_symbol,
    native_path,
    symbol_table,
)


def test_h256_symbols():
    assert constructor_symbol(["crypto"], "H256") == "new_crypto_H256"
    assert constructor_symbol(["crypto"], "H256", "from_long") == "new_from_long_crypto_H256"
    assert copy_symbol(["crypto"], "H256") == "cpy_crypto_H256"
    assert destructor_symbol(["crypto"], "H256") == "del_crypto_H256"
    assert method_symbol(["crypto"], "H256", "update") == "mth_crypto_H256_update"


def test_global_namespace():
    assert constructor_symbol([], "Integer") == "new_Integer"
    assert method_symbol([], "Integer", "to_long") == "mth_Integer_to_long"


def test_underscores_are_doubled_inside_segments():
    assert escaped_path(["foo_bar"], "C") == "foo__bar_C"
    assert escaped_path(["foo", "bar"], "C") == "foo_bar_C"
    assert escaped_path(["foo_bar"], "C") != escaped_path(["foo", "bar"], "C")


def test_member_names_are_not_escaped():
    assert method_symbol(["a"], "B", "do_it") == "mth_a_B_do_it"


def test_native_path():
    assert native_path(["a", "b"], "C") == "a::b::C"
    assert native_path([], "C") == "C"


@pytest.mark.parametrize(
    "namespace, name, method",
    [
        (["crypto-x"], "H256", "update"),
        (["crypto"], "2H", "update"),
        (["crypto"], "H256", "up date"),
        (["crypto"], "", "update"),
        (["krüpto"], "H256", "update"),
    ],
)
def test_invalid_identifiers(namespace, name, method):
    with pytest.raises(SymbolEncodingError):
        method_symbol(namespace, name, method)


def test_member_symbol_dispatch():
    assert member_symbol(["n"], "C", "", SymbolRole.DESTRUCTOR) == "del_n_C"
    assert member_symbol(["n"], "C", "f", SymbolRole.METHOD) == "mth_n_C_f"
    assert member_symbol(["n"], "C", "v", SymbolRole.CONSTRUCTOR) == "new_v_n_C"


def test_symbol_table_order(h256):
    table = symbol_table(h256)
    assert [e.symbol for e in table] == [
        "new_crypto_H256",
        "del_crypto_H256",
        "mth_crypto_H256_digest_size",
        "mth_crypto_H256_update",
    ]
    assert table[0].role == SymbolRole.CONSTRUCTOR


def test_collision_between_classes():
    first = NamespacedClass(namespace=("a",), name="b", spec=ClassSpec().method("c_d", void()))
    second = NamespacedClass(namespace=("a", "b"), name="c", spec=ClassSpec().method("d", void()))
    with pytest.raises(SymbolCollisionError) as info:
        check_symbol_collisions([first, second])
    assert info.value.symbol == "mth_a_b_c_d"
    assert info.value.owners == ("a::b::c_d", "a::b::c::d")


def test_no_collision(h256):
    other = NamespacedClass(
        namespace=("crypto",),
        name="Integer",
        spec=ClassSpec().constructor(value(LONG), variant="from_long"),
    )
    check_symbol_collisions([h256, other])


def test_underscores_at_segment_edges_are_ambiguous():
    assert escaped_path(["a_", "b"], "C") == "a___b_C"
    assert escaped_path(["a", "_b"], "C") == "a___b_C"

    first = NamespacedClass(namespace=("a_", "b"), name="C", spec=ClassSpec())
    second = NamespacedClass(namespace=("a", "_b"), name="C", spec=ClassSpec())
    with pytest.raises(SymbolCollisionError) as info:
        check_symbol_collisions([first, second])
    assert info.value.symbol == "del_a___b_C"
    assert info.value.owners == ("a_::b::C destructor", "a::_b::C destructor")
