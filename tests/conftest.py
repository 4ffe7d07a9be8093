import os
import pathlib

import pytest

from ffi_binding_generator.emitters.dual_emitter import DualEmitter
from ffi_binding_generator.models import (
    ClassSpec,
    NamespacedClass,
    SIZE_T,
    UCHAR,
    UINT,
    const_ptr,
    value,
    void,
)


@pytest.fixture(scope="session")
def data_folder():
    current_directory = pathlib.Path(os.path.dirname(os.path.abspath(__file__)))
    return current_directory / "data"


@pytest.fixture
def h256_spec():
    """crypto::H256 with a default constructor, update(data, len) and digest_size() const."""
    return (
        ClassSpec()
        .constructor()
        .method("update", void(), const_ptr(UCHAR), value(SIZE_T))
        .const_method("digest_size", value(UINT))
    )


@pytest.fixture
def h256(h256_spec):
    return NamespacedClass(namespace=("crypto",), name="H256", spec=h256_spec)


@pytest.fixture
def emitter():
    return DualEmitter()
