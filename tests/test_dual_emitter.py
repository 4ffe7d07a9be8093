import io

import pytest

from ffi_binding_generator.emitters.dual_emitter import DualEmitter, EmitterConfig
from ffi_binding_generator.errors import SymbolCollisionError, SymbolEncodingError
from ffi_binding_generator.models import (
    ClassSpec,
    EmissionContext,
    LONG,
    NamespacedClass,
    SIZE_T,
    UCHAR,
    UINT,
    VOID,
    const_ptr,
    const_ref,
    custom,
    mut_ptr,
    mut_ref,
    value,
    void,
)

H256_EXTERN = """\
extern "C" {
  // crypto::H256
  pub fn new_crypto_H256() -> *mut c_void;
  pub fn del_crypto_H256(ctx: *mut c_void);
  pub fn mth_crypto_H256_digest_size(ctx: *const c_void) -> c_uint;
  pub fn mth_crypto_H256_update(ctx: *mut c_void, arg0: *const c_uchar, arg1: size_t);
}
"""

H256_GLUE = """\
// crypto::H256

extern "C"
crypto::H256* new_crypto_H256() {
  return new crypto::H256();
}

extern "C"
void del_crypto_H256(crypto::H256* ctx) {
  delete ctx;
}

extern "C"
unsigned int mth_crypto_H256_digest_size(crypto::H256 const* ctx) {
  return ctx->digest_size();
}

extern "C"
void mth_crypto_H256_update(crypto::H256* ctx, unsigned char const* arg0, size_t arg1) {
  ctx->update(arg0, arg1);
}
"""


class FailingSink(io.StringIO):
    def write(self, s):
        raise OSError("disk full")


def emit(emitter, cls):
    with EmissionContext.in_memory() as ctx:
        emitter.emit(cls, ctx)
        return ctx.getvalue()


def test_h256_end_to_end(emitter, h256):
    glue, extern = emit(emitter, h256)
    assert glue == H256_GLUE
    assert extern == H256_EXTERN


def test_emission_is_deterministic(emitter, h256):
    assert emit(emitter, h256) == emit(emitter, h256)
    assert emit(DualEmitter(), h256) == emit(emitter, h256)


def test_registration_order_does_not_matter(emitter):
    a = ClassSpec().method("b", void()).method("a", void()).constructor()
    b = ClassSpec().constructor().method("a", void()).method("b", void())
    cls_a = NamespacedClass(namespace=("n",), name="C", spec=a)
    cls_b = NamespacedClass(namespace=("n",), name="C", spec=b)
    assert emit(emitter, cls_a) == emit(emitter, cls_b)


def test_one_function_per_member_on_both_sides(emitter):
    spec = (
        ClassSpec()
        .constructor()
        .constructor(value(LONG), variant="from_long")
        .method("a", void())
        .method("b", value(LONG))
        .const_method("c", value(SIZE_T))
    )
    cls = NamespacedClass(namespace=(), name="Integer", spec=spec)
    glue, extern = emit(emitter, cls)
    # 2 constructors + destructor + 3 methods
    assert glue.count('extern "C"\n') == 6
    assert extern.count("  pub fn ") == 6
    assert "Integer* new_from_long_Integer(long arg0) {\n  return new Integer(arg0);\n}" in glue
    assert "  pub fn new_from_long_Integer(arg0: c_long) -> *mut c_void;" in extern


def test_void_result_has_no_return(emitter):
    cls = NamespacedClass(namespace=(), name="C", spec=ClassSpec().method("reset", void()))
    glue, extern = emit(emitter, cls)
    assert "  ctx->reset();\n" in glue
    assert "return ctx->reset" not in glue
    assert "  pub fn mth_C_reset(ctx: *mut c_void);" in extern


def test_void_pointer_result_is_returned(emitter):
    cls = NamespacedClass(namespace=(), name="C", spec=ClassSpec().method("data", mut_ptr(VOID)))
    glue, extern = emit(emitter, cls)
    assert "void* mth_C_data(C* ctx) {\n  return ctx->data();\n}" in glue
    assert "  pub fn mth_C_data(ctx: *mut c_void) -> *mut c_void;" in extern


def test_reference_parameters_are_forwarded_dereferenced(emitter):
    spec = ClassSpec().method("absorb", void(), const_ref(custom("crypto::Block")), mut_ref(LONG))
    cls = NamespacedClass(namespace=("crypto",), name="H256", spec=spec)
    glue, extern = emit(emitter, cls)
    assert (
        "void mth_crypto_H256_absorb(crypto::H256* ctx, crypto::Block const* arg0, long* arg1) {\n"
        "  ctx->absorb(*arg0, *arg1);\n"
        "}"
    ) in glue
    assert "  pub fn mth_crypto_H256_absorb(ctx: *mut c_void, arg0: *const c_void, arg1: *mut c_long);" in extern


def test_long_parameter_list(emitter):
    params = [value(UCHAR), value(UINT), value(SIZE_T), value(LONG), const_ptr(UCHAR), mut_ptr(VOID)]
    cls = NamespacedClass(namespace=(), name="C", spec=ClassSpec().method("f", value(LONG), *params))
    glue, extern = emit(emitter, cls)
    assert "ctx->f(arg0, arg1, arg2, arg3, arg4, arg5)" in glue
    assert (
        "(ctx: *mut c_void, arg0: c_uchar, arg1: c_uint, arg2: size_t, "
        "arg3: c_long, arg4: *const c_uchar, arg5: *mut c_void) -> c_long;"
    ) in extern


def test_copy_constructor(emitter, h256_spec):
    cls = NamespacedClass(namespace=("crypto",), name="H256", spec=h256_spec.with_copy())
    glue, extern = emit(emitter, cls)
    assert (
        "crypto::H256* cpy_crypto_H256(crypto::H256 const* ctx) {\n"
        "  return new crypto::H256(*ctx);\n"
        "}"
    ) in glue
    assert "  pub fn cpy_crypto_H256(ctx: *const c_void) -> *mut c_void;" in extern
    # copy sits between constructors and destructor
    assert extern.index("new_crypto_H256") < extern.index("cpy_crypto_H256") < extern.index("del_crypto_H256")


def test_class_without_members_still_gets_destructor(emitter):
    cls = NamespacedClass(namespace=("crypto",), name="Block", spec=ClassSpec())
    glue, extern = emit(emitter, cls)
    assert "void del_crypto_Block(crypto::Block* ctx) {\n  delete ctx;\n}" in glue
    assert extern.count("pub fn") == 1


def test_link_name():
    cls = NamespacedClass(namespace=(), name="C", spec=ClassSpec())
    emitter = DualEmitter(config=EmitterConfig(link_name="crypto"))
    _, extern = emit(emitter, cls)
    assert extern.startswith('#[link(name = "crypto")]\nextern "C" {\n')


def test_encoding_error_leaves_sinks_untouched(emitter):
    spec = ClassSpec().method("update", void(), value(custom("Blöck")))
    cls = NamespacedClass(namespace=("crypto",), name="H256", spec=spec)
    with EmissionContext.in_memory() as ctx:
        with pytest.raises(SymbolEncodingError):
            emitter.emit(cls, ctx)
        assert ctx.getvalue() == ("", "")


def test_invalid_namespace_segment(emitter):
    cls = NamespacedClass(namespace=("crypto::x",), name="H256", spec=ClassSpec())
    with pytest.raises(SymbolEncodingError):
        emit(emitter, cls)


def test_failing_glue_sink_still_writes_extern(emitter, h256):
    extern = io.StringIO()
    ctx = EmissionContext(glue=FailingSink(), extern=extern)
    with pytest.raises(OSError, match="disk full"):
        emitter.emit(h256, ctx)
    assert extern.getvalue() == H256_EXTERN


def test_failing_extern_sink_still_writes_glue(emitter, h256):
    glue = io.StringIO()
    ctx = EmissionContext(glue=glue, extern=FailingSink())
    with pytest.raises(OSError):
        emitter.emit(h256, ctx)
    assert glue.getvalue() == H256_GLUE


def test_emit_all_writes_prologues(h256):
    emitter = DualEmitter(config=EmitterConfig(includes=("crypto/h256.h", "<vector>")))
    with EmissionContext.in_memory() as ctx:
        emitter.emit_all([h256], ctx)
        glue, extern = ctx.getvalue()
    assert '#include <cstddef>\n#include "crypto/h256.h"\n#include <vector>\n' in glue
    assert glue.endswith(H256_GLUE)
    assert "use libc::{c_long, c_uchar, c_uint, c_void, size_t};\n" in extern
    assert extern.endswith(H256_EXTERN)


def test_emit_all_without_libc_import(h256):
    emitter = DualEmitter(config=EmitterConfig(libc_import=False))
    with EmissionContext.in_memory() as ctx:
        emitter.emit_all([h256], ctx)
        _, extern = ctx.getvalue()
    assert "use libc" not in extern


def test_emit_all_checks_collisions_first(emitter):
    first = NamespacedClass(namespace=("a",), name="b", spec=ClassSpec().method("c_d", void()))
    second = NamespacedClass(namespace=("a", "b"), name="c", spec=ClassSpec().method("d", void()))
    with EmissionContext.in_memory() as ctx:
        with pytest.raises(SymbolCollisionError):
            emitter.emit_all([first, second], ctx)
        assert ctx.getvalue() == ("", "")


def test_emit_to_files(tmp_path, emitter, h256):
    glue_path, extern_path = tmp_path / "b.cpp", tmp_path / "b.rs"
    with EmissionContext.open(glue_path, extern_path) as ctx:
        emitter.emit(h256, ctx)
    assert glue_path.read_text() == H256_GLUE
    assert extern_path.read_text() == H256_EXTERN
