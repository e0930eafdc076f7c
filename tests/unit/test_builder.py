from __future__ import annotations

from contractdiff.contract.builder import (
    KIND_ALIAS,
    KIND_BASIC,
    KIND_STRUCT,
    ClassSpec,
    ContractBuilder,
    ExtractorOptions,
    PackageInfo,
    is_interface,
    sort_contract,
)
from contractdiff.contract.models import (
    Contract,
    FieldContract,
    FunctionContract,
    MethodContract,
    PositionInfo,
    TypeContract,
)


def _builder(**options) -> ContractBuilder:
    return ContractBuilder(PackageInfo(name="pkg", module_path="pkg"), ExtractorOptions(**options))


def _class(name: str, **overrides) -> ClassSpec:
    data = {
        "name": name,
        "package": "pkg",
        "doc_comment": "",
        "position": PositionInfo(filename="mod.py", line=1, column=1),
    }
    data.update(overrides)
    return ClassSpec(**data)


def test_exported_hides_private_and_dunder_names():
    builder = _builder()
    builder.begin_module(None)

    assert builder.exported("Client")
    assert not builder.exported("_helper")
    assert not builder.exported("__version__")


def test_exported_honours_module_all():
    builder = _builder()
    builder.begin_module(["Client"])

    assert builder.exported("Client")
    assert not builder.exported("Server")


def test_include_private_exposes_underscore_names():
    builder = _builder(include_private=True)
    builder.begin_module(["Client"])

    assert builder.exported("_helper")
    assert builder.exported("Server")
    assert not builder.exported("__all__")


def test_member_visibility_keeps_dunder_methods():
    builder = _builder()

    assert builder.member_visible("__call__")
    assert builder.member_visible("run")
    assert not builder.member_visible("_run")
    assert not builder.field_visible("_cache")


def test_is_interface_by_base_or_metaclass():
    assert is_interface(["Protocol"], None)
    assert is_interface(["typing.Protocol[T]"], None)
    assert is_interface(["abc.ABC"], None)
    assert is_interface([], "abc.ABCMeta")
    assert not is_interface(["BaseModel"], None)


def test_add_class_classifies_interface_with_embedded_bases():
    builder = _builder()
    builder.add_class(
        _class(
            "ReadWriter",
            base_names=["Reader", "Writer", "Protocol"],
            methods=[MethodContract(name="flush"), MethodContract(name="_internal")],
        )
    )

    contract = builder.build()

    [interface] = contract.interfaces
    assert interface.embedded == ["Reader", "Writer"]
    assert [m.name for m in interface.methods] == ["flush"]
    assert contract.types == []


def test_add_class_primitive_subclass_without_body_is_basic():
    builder = _builder()
    builder.add_class(_class("UserId", base_names=["int"]))

    [type_contract] = builder.build().types
    assert type_contract.kind == KIND_BASIC
    assert type_contract.underlying == "int"


def test_add_class_with_fields_is_struct():
    builder = _builder()
    builder.add_class(
        _class(
            "Config",
            fields=[FieldContract(name="name", type="str"), FieldContract(name="_secret", type="str")],
        )
    )

    [type_contract] = builder.build().types
    assert type_contract.kind == KIND_STRUCT
    assert [f.name for f in type_contract.fields] == ["name"]


def test_add_basic_over_non_primitive_becomes_alias():
    builder = _builder()
    builder.add_basic("Payload", "pkg", "", PositionInfo(), "dict[str, int]")

    [type_contract] = builder.build().types
    assert type_contract.kind == KIND_ALIAS
    assert type_contract.underlying == "dict[str, int]"


def test_first_declaration_wins():
    builder = _builder()
    builder.add_function(FunctionContract(name="run", doc_comment="first"))
    builder.add_function(FunctionContract(name="run", doc_comment="second"))

    [function] = builder.build().functions
    assert function.doc_comment == "first"


def test_build_sorts_every_level():
    builder = _builder()
    builder.add_function(FunctionContract(name="zeta"))
    builder.add_function(FunctionContract(name="alpha"))
    builder.add_class(
        _class(
            "Config",
            fields=[FieldContract(name="b"), FieldContract(name="a")],
            methods=[MethodContract(name="save"), MethodContract(name="load")],
        )
    )

    contract = builder.build()

    assert [f.name for f in contract.functions] == ["alpha", "zeta"]
    assert [f.name for f in contract.types[0].fields] == ["a", "b"]
    assert [m.name for m in contract.types[0].methods] == ["load", "save"]


def test_sort_contract_is_idempotent():
    contract = Contract(
        package_name="pkg",
        functions=[FunctionContract(name="b"), FunctionContract(name="a")],
        types=[
            TypeContract(
                name="T",
                kind=KIND_STRUCT,
                fields=[FieldContract(name="y"), FieldContract(name="x")],
            )
        ],
    )

    once = sort_contract(contract)
    twice = sort_contract(once)

    assert once.semantic_dump() == twice.semantic_dump()
    assert [f.name for f in once.functions] == ["a", "b"]
