"""Tests for the map and level header mapping."""

import xml.etree.ElementTree as ET

import pytest
from structlog.testing import capture_logs

from sfm_manager import (
    DEFAULT_COLORS,
    MAP_HEAD_FIELDS,
    EncodeFailure,
    LevelHead,
    Map,
    MapHead,
    Object,
    ParseFailure,
)


def _xml(elem: ET.Element) -> str:
    return ET.tostring(elem, encoding="unicode", short_empty_elements=False)


def _map_markup(num_objects="2", objects=2):
    head = "".join(f"<{name}>{'x' if name in ('name', 'colors') else '1'}</{name}>"
                   for name in MAP_HEAD_FIELDS)
    if num_objects is not None:
        head += f"<num_objects>{num_objects}</num_objects>"
    body = '<object type="1" x="0" y="0"/>' * objects
    return f"<sfm_map><head>{head}</head><objects>{body}</objects></sfm_map>"


# -----------------------------------------------------------------------------
# Map header and derived count
# -----------------------------------------------------------------------------

def test_map_head_children_follow_wire_order():
    elem = MapHead(name="a").to_xml(num_objects=0)
    assert [child.tag for child in elem] == list(MAP_HEAD_FIELDS) + ["num_objects"]


def test_num_objects_is_computed_from_objects():
    sfm_map = Map(head=MapHead(name="a"), objects=[Object(type_id=1, x=0, y=0)] * 3)
    assert sfm_map.to_xml().find("head/num_objects").text == "3"


def test_colors_are_preserved_verbatim():
    head = MapHead(name="a", colors=DEFAULT_COLORS)
    decoded = MapHead.from_xml(ET.fromstring(_xml(head.to_xml(num_objects=0))))
    assert decoded.colors == DEFAULT_COLORS
    assert len(decoded.colors) == 744


def test_map_head_round_trips_every_field():
    head = MapHead(name="n", version=1, tileset=2, tileset2=3, bg=4, spikes=5, spikes2=6,
                   width=7, height=8, colors="c", scroll_mode=9, music=65535)
    assert MapHead.from_xml(ET.fromstring(_xml(head.to_xml(num_objects=0)))) == head


def test_stored_count_larger_than_actual_is_ignored():
    with capture_logs() as logs:
        sfm_map = Map.from_xml(ET.fromstring(_map_markup(num_objects="7", objects=2)))

    assert len(sfm_map.objects) == 2
    assert {"event": "object_count_mismatch", "log_level": "warning",
            "map": "sfm_map", "stored": 7, "actual": 2}.items() <= logs[0].items()


def test_stored_count_smaller_than_actual_is_ignored():
    sfm_map = Map.from_xml(ET.fromstring(_map_markup(num_objects="0", objects=3)))
    assert len(sfm_map.objects) == 3


def test_matching_count_logs_nothing():
    with capture_logs() as logs:
        Map.from_xml(ET.fromstring(_map_markup(num_objects="2", objects=2)))
    assert not [entry for entry in logs if entry["event"] == "object_count_mismatch"]


def test_missing_count_is_tolerated():
    sfm_map = Map.from_xml(ET.fromstring(_map_markup(num_objects=None, objects=1)))
    assert len(sfm_map.objects) == 1


def test_malformed_count_is_rejected():
    with pytest.raises(ParseFailure, match=r"sfm_map\.head\.num_objects"):
        Map.from_xml(ET.fromstring(_map_markup(num_objects="many")))


def test_map_requires_objects_element():
    markup = _map_markup().replace("<objects>", "<stuff>").replace("</objects>", "</stuff>")
    with pytest.raises(ParseFailure, match="missing required element <objects>"):
        Map.from_xml(ET.fromstring(markup))


@pytest.mark.parametrize("field_name", MAP_HEAD_FIELDS)
def test_map_head_fields_are_required(field_name):
    elem = ET.fromstring(_map_markup())
    head = elem.find("head")
    head.remove(head.find(field_name))
    with pytest.raises(ParseFailure, match=f"missing required element <{field_name}>"):
        Map.from_xml(elem)


def test_map_head_rejects_out_of_range_values():
    with pytest.raises(EncodeFailure, match=r"head\.width: 70000 is out of range"):
        MapHead(name="a", width=70000).to_xml(num_objects=0)


def test_header_text_rejects_carriage_return():
    with pytest.raises(EncodeFailure, match=r"maps_head\.maps_name: carriage return"):
        LevelHead(name="two\rlines").to_xml()


# -----------------------------------------------------------------------------
# Level header and submap order
# -----------------------------------------------------------------------------

def test_submap_entries_are_explicit_pairs():
    text = _xml(LevelHead(name="L", submap_order=[0, 3]).to_xml())
    assert '<submap_order><map id="0"></map><map id="3"></map></submap_order>' in text
    assert "/>" not in text


def test_submap_order_round_trips_duplicates_and_order():
    head = LevelHead(name="L", version=103, screenshot_submap=2, last_submap=1,
                     submap_order=[2, 0, 2, 65535])
    assert LevelHead.from_xml(ET.fromstring(_xml(head.to_xml()))) == head


def test_empty_submap_order():
    head = LevelHead(name="L")
    text = _xml(head.to_xml())
    assert "<submap_order></submap_order>" in text
    assert LevelHead.from_xml(ET.fromstring(text)).submap_order == []


def test_submap_entry_text_is_ignored():
    markup = (
        "<maps_head><maps_name>L</maps_name><maps_version>1</maps_version>"
        "<screenshot_submap>0</screenshot_submap><last_submap>0</last_submap>"
        '<submap_order><map id="4">filler</map><map id="5"/></submap_order></maps_head>'
    )
    assert LevelHead.from_xml(ET.fromstring(markup)).submap_order == [4, 5]


def test_submap_entry_requires_id():
    markup = (
        "<maps_head><maps_name>L</maps_name><maps_version>1</maps_version>"
        "<screenshot_submap>0</screenshot_submap><last_submap>0</last_submap>"
        "<submap_order><map/></submap_order></maps_head>"
    )
    with pytest.raises(ParseFailure, match=r"maps_head\.submap_order\.map\[0\]: missing required attribute @id"):
        LevelHead.from_xml(ET.fromstring(markup))


def test_submap_id_must_fit_u16():
    with pytest.raises(EncodeFailure, match=r"submap_order\.map\[1\]@id"):
        LevelHead(name="L", submap_order=[0, 65536]).to_xml()
