from abap_adt_mcp.roots import UNKNOWN_ROOT, resolve_root


def test_class_root_wins_over_generic_object():
    data = {
        "adtcore:object": {"_attributes": {"adtcore:name": "GENERIC"}},
        "class:abapClass": {"_attributes": {"adtcore:name": "ZCL_FOO"}},
    }
    root = resolve_root(data)
    assert root.kind == "class"
    assert root.tag == "class:abapClass"
    assert root.attributes["adtcore:name"] == "ZCL_FOO"


def test_program_before_table():
    data = {
        "table:abapTable": {"_attributes": {"adtcore:name": "ZTAB"}},
        "program:abapProgram": {"_attributes": {"adtcore:name": "ZPROG"}},
    }
    assert resolve_root(data).kind == "program"


def test_table_root_without_package():
    root = resolve_root({"table:abapTable": {"_attributes": {"adtcore:name": "ZTAB"}}})
    assert root.kind == "table"
    assert root.package_name is None


def test_package_reference():
    root = resolve_root(
        {
            "program:abapProgram": {
                "_attributes": {"adtcore:name": "ZPROG"},
                "adtcore:packageRef": {"_attributes": {"adtcore:name": "ZPKG"}},
            }
        }
    )
    assert root.package_name == "ZPKG"


def test_unknown_root():
    root = resolve_root({"something:else": {"_attributes": {}}})
    assert root is UNKNOWN_ROOT
    assert root.is_unknown
    assert root.attributes == {}
    assert root.package_name is None


def test_non_mapping_input_is_unknown():
    assert resolve_root("REPORT z.") is UNKNOWN_ROOT
    assert resolve_root(None) is UNKNOWN_ROOT
    assert resolve_root([{"class:abapClass": {}}]) is UNKNOWN_ROOT
