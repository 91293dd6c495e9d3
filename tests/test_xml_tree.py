from xml.etree import ElementTree as et

import pytest

from abap_adt_mcp.xml_tree import attributes_of, parse_xml_tree, text_of, xml_array

SEARCH_XML = """<?xml version="1.0" encoding="utf-8"?>
<adtcore:objectReferences xmlns:adtcore="http://www.sap.com/adt/core">
  <adtcore:objectReference adtcore:uri="/sap/bc/adt/oo/classes/zcl_foo" adtcore:type="CLAS/OC" adtcore:name="ZCL_FOO" adtcore:packageName="ZPKG"/>
  <adtcore:objectReference adtcore:uri="/sap/bc/adt/programs/programs/zprog" adtcore:type="PROG/P" adtcore:name="ZPROG"/>
</adtcore:objectReferences>
"""

NODESTRUCTURE_XML = """<?xml version="1.0" encoding="utf-8"?>
<asx:abap xmlns:asx="http://www.sap.com/abapxml" version="1.0">
  <asx:values>
    <DATA>
      <TREE_CONTENT>
        <SEU_ADT_REPOSITORY_OBJ_NODE>
          <OBJECT_TYPE>CLAS/OC</OBJECT_TYPE>
          <OBJECT_NAME>ZCL_FOO</OBJECT_NAME>
        </SEU_ADT_REPOSITORY_OBJ_NODE>
      </TREE_CONTENT>
    </DATA>
  </asx:values>
</asx:abap>
"""


def test_repeated_children_become_list():
    tree = parse_xml_tree(SEARCH_XML)
    references = tree["adtcore:objectReferences"]["adtcore:objectReference"]
    assert isinstance(references, list)
    assert references[0]["_attributes"]["adtcore:name"] == "ZCL_FOO"
    assert references[1]["_attributes"]["adtcore:type"] == "PROG/P"


def test_single_child_stays_mapping_and_text_is_kept():
    tree = parse_xml_tree(NODESTRUCTURE_XML)
    node = tree["asx:abap"]["asx:values"]["DATA"]["TREE_CONTENT"]["SEU_ADT_REPOSITORY_OBJ_NODE"]
    assert isinstance(node, dict)
    assert node["OBJECT_NAME"] == {"_text": "ZCL_FOO"}
    assert tree["asx:abap"]["_attributes"] == {"version": "1.0"}


def test_document_prefix_wins():
    tree = parse_xml_tree('<core:object xmlns:core="http://www.sap.com/adt/core" core:name="X"/>')
    assert tree == {"core:object": {"_attributes": {"core:name": "X"}}}


def test_known_prefix_used_for_default_namespace():
    tree = parse_xml_tree('<abapClass xmlns="http://www.sap.com/adt/oo/classes"/>')
    assert "class:abapClass" in tree


def test_unknown_default_namespace_keeps_local_name():
    tree = parse_xml_tree('<root xmlns="urn:unknown"><child>v</child></root>')
    assert tree == {"root": {"child": {"_text": "v"}}}


def test_bytes_input():
    assert parse_xml_tree(SEARCH_XML.encode("utf-8")) == parse_xml_tree(SEARCH_XML)


def test_malformed_xml_raises():
    with pytest.raises(et.ParseError):
        parse_xml_tree("<unclosed>")


def test_helpers():
    assert xml_array(None) == []
    assert xml_array({"a": 1}) == [{"a": 1}]
    assert xml_array([1, 2]) == [1, 2]
    assert attributes_of({"_attributes": {"k": "v"}}) == {"k": "v"}
    assert attributes_of("text") == {}
    assert text_of({"_text": "hello"}) == "hello"
    assert text_of([{"_text": "first"}, {"_text": "second"}]) == "first"
    assert text_of(None) == ""
    assert text_of({}) == ""
