import json

import pytest

from ffi_binding_generator.generate_bindings import (
    EXIT_COLLECTION_FAILED,
    EXIT_NOTHING_TO_GENERATE,
    EXIT_OK,
    EXIT_SYMBOL_COLLISION,
    discover_header_files,
    main,
    split_clang_args,
)
from ffi_binding_generator.manifest import build_manifest
from ffi_binding_generator.models import GenerationContext


@pytest.fixture
def out_dir(tmp_path):
    return tmp_path / "generated"


def write_json(path, document):
    path.write_text(json.dumps(document))
    return path


def test_generate_from_description(data_folder, out_dir):
    rc = main([
        "--description", str(data_folder / "crypto.json"),
        "--include", "crypto/h256.h",
        "--link-name", "crypto",
        "--output-dir", str(out_dir),
    ])
    assert rc == EXIT_OK

    glue = (out_dir / "bindings.cpp").read_text()
    extern = (out_dir / "bindings.rs").read_text()
    assert '#include "crypto/h256.h"' in glue
    assert "void mth_crypto_H256_update(crypto::H256* ctx, unsigned char const* arg0, size_t arg1) {" in glue
    assert "crypto::H256* cpy_crypto_H256(crypto::H256 const* ctx) {" in glue
    assert '#[link(name = "crypto")]' in extern
    assert "  pub fn mth_crypto_H256_absorb(ctx: *mut c_void, arg0: *const c_void);" in extern
    # Classes keep the order of the description file
    assert extern.index("// crypto::H256") < extern.index("// crypto::Block")

    manifest = json.loads((out_dir / "manifest.json").read_text())
    assert manifest["generator"]["name"] == "ffi-binding-generator"
    assert manifest["class_count"] == 2
    symbols = [s["symbol"] for s in manifest["classes"][0]["symbols"]]
    assert symbols == [
        "new_crypto_H256",
        "new_from_long_crypto_H256",
        "cpy_crypto_H256",
        "del_crypto_H256",
        "mth_crypto_H256_absorb",
        "mth_crypto_H256_digest_size",
        "mth_crypto_H256_update",
    ]


def test_rerun_is_byte_identical(data_folder, out_dir):
    args = ["--description", str(data_folder / "crypto.json"), "--output-dir", str(out_dir), "--no-manifest"]
    assert main(args) == EXIT_OK
    first = (out_dir / "bindings.cpp").read_text(), (out_dir / "bindings.rs").read_text()
    assert main(args) == EXIT_OK
    assert ((out_dir / "bindings.cpp").read_text(), (out_dir / "bindings.rs").read_text()) == first
    assert not (out_dir / "manifest.json").exists()


def test_custom_artifact_names(data_folder, out_dir):
    rc = main([
        "--description", str(data_folder / "crypto.json"),
        "--output-dir", str(out_dir),
        "--glue-name", "crypto_glue.cpp",
        "--extern-name", "crypto_sys.rs",
        "--no-libc-import",
    ])
    assert rc == EXIT_OK
    assert (out_dir / "crypto_glue.cpp").is_file()
    assert "use libc" not in (out_dir / "crypto_sys.rs").read_text()


def test_dry_run_writes_nothing(data_folder, out_dir):
    rc = main(["--description", str(data_folder / "crypto.json"), "--output-dir", str(out_dir), "--dry-run"])
    assert rc == EXIT_OK
    assert not out_dir.exists()


def test_nothing_to_generate(out_dir):
    assert main(["--output-dir", str(out_dir)]) == EXIT_NOTHING_TO_GENERATE


def test_empty_description(tmp_path, out_dir):
    path = write_json(tmp_path / "empty.json", {"classes": []})
    assert main(["--description", str(path), "--output-dir", str(out_dir)]) == EXIT_NOTHING_TO_GENERATE


def test_malformed_description(tmp_path, out_dir):
    path = write_json(tmp_path / "bad.json", {"classes": [{"namespace": []}]})
    assert main(["--description", str(path), "--output-dir", str(out_dir)]) == EXIT_COLLECTION_FAILED


def test_symbol_collision(tmp_path, out_dir):
    path = write_json(tmp_path / "clash.json", {"classes": [
        {"namespace": ["a"], "name": "b", "methods": {"c_d": {}}},
        {"namespace": ["a", "b"], "name": "c", "methods": {"d": {}}},
    ]})
    assert main(["--description", str(path), "--output-dir", str(out_dir)]) == EXIT_SYMBOL_COLLISION
    assert not out_dir.exists()


def test_discover_header_files(tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "a.h").write_text("")
    (tmp_path / "sub" / "b.hpp").write_text("")
    (tmp_path / "notes.txt").write_text("")
    found = discover_header_files([str(tmp_path), str(tmp_path / "a.h"), str(tmp_path / "missing")])
    assert [p.name for p in found] == ["a.h", "b.hpp"]


def test_split_clang_args():
    assert split_clang_args('-I"/opt/my include" -std=c++17') == ["-I/opt/my include", "-std=c++17"]
    assert split_clang_args("") == []


def test_build_manifest(tmp_path, h256):
    ctx = GenerationContext(output_dir=tmp_path, templates_dir=None)
    manifest = build_manifest(ctx, [h256], argv=["ffi-binding-generator", "--description", "a b.json"])
    assert manifest["invocation"]["command_line"] == "ffi-binding-generator --description 'a b.json'"
    assert manifest["generation"]["glue_path"] == str(tmp_path / "bindings.cpp")
    assert manifest["classes"][0]["symbols"][0] == {
        "role": "constructor",
        "member": "",
        "symbol": "new_crypto_H256",
    }
