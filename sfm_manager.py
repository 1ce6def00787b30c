#!/usr/bin/env python3

"""
Module for reading, modifying and writing SFM level files (sfm_maps XML)

=============================================================================
WHAT IS AN SFM LEVEL?
=============================================================================

An SFM level is the XML document a host game loads to build a stage. Level
editors and generators produce it; the game consumes it. A level is a list
of "submaps" (screens), each with its own header and a list of placed
objects. Objects may carry scripted events and free-form parameters.

The host's parser is strict about two details that a generic XML writer
does not give you for free:

- Empty elements must be written as an explicit pair:
      <map id="0"></map>       accepted
      <map id="0"/>            rejected
- Every map header carries <num_objects>, the number of <object> elements
  in that map. It is a derived value: we compute it when writing and do
  not keep it in the model.

=============================================================================
FILE STRUCTURE
=============================================================================

    <sfm_maps>
        <maps_head>
            <maps_name>Test</maps_name>
            <maps_version>103</maps_version>
            <screenshot_submap>0</screenshot_submap>
            <last_submap>0</last_submap>
            <submap_order>
                <map id="0"></map>
            </submap_order>
        </maps_head>
        <sfm_map>
            <head>
                <name>Test</name>
                <version>103</version>
                ...
                <colors>5A02...</colors>
                <scroll_mode>0</scroll_mode>
                <music>60</music>
                <num_objects>1</num_objects>
            </head>
            <objects>
                <object type="12" x="64" y="128" slot="1" sprite_angle="90">
                    <event eventIndex="3">
                        <param key="delay" val="10"></param>
                        <event eventIndex="4"></event>
                    </event>
                    <param key="color" val="red"></param>
                    <obj type="13" x="0" y="0"></obj>
                </object>
            </objects>
        </sfm_map>
    </sfm_maps>

=============================================================================
ROUND TRIP
=============================================================================

    level = decode_level(text)
    level.maps[0].objects.append(Object(type_id=1, x=32, y=32))
    text = encode_level(level)

decode_level(encode_level(level)) == level holds for every level whose
fields fit their wire types. Values that do not fit (negative numbers,
numbers too wide for their field, characters XML cannot carry) are
rejected by encode_level instead of producing a file the host or this
module could not read back.

=============================================================================
"""

import re
import xml.etree.ElementTree as ET
from typing import Optional, List, Union, Iterator
from dataclasses import dataclass, field
from enum import Enum

import structlog


# =============================================================================
# ERRORS
# =============================================================================

class LevelCodecError(Exception):
    """Base class for every error raised while converting levels."""


class ParseFailure(LevelCodecError):
    """The text could not be decoded into a Level."""


class EncodeFailure(LevelCodecError):
    """The Level could not be written as sfm_maps markup."""


# =============================================================================
# SCALAR HELPERS
# =============================================================================

U16_MAX = 0xFFFF
U32_MAX = 0xFFFF_FFFF

XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>\n'

# Deepest element nesting accepted in either direction. ElementTree
# serializes recursively, so this stays well under the recursion limit.
MAX_ELEMENT_DEPTH = 500

_UINT_RE = re.compile(r'[0-9]+')

# Anything outside the XML 1.0 Char production
_XML_ILLEGAL_RE = re.compile(
    '[^\t\n\r\u0020-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]'
)


def _parse_uint(token: Optional[str], maximum: int, where: str) -> int:
    """
    Convert a wire token to an unsigned integer no larger than `maximum`.

    Surrounding whitespace is tolerated (pretty-printed files), signs,
    underscores and non-ASCII digits are not.
    """
    if token is None:
        raise ParseFailure(f"{where}: missing value")

    stripped = token.strip()
    if not _UINT_RE.fullmatch(stripped):
        raise ParseFailure(f"{where}: expected an unsigned integer, got {token!r}")

    # Leading zeros are harmless; anything longer than the maximum is out
    # of range and must not reach int(), which caps string length
    digits = stripped.lstrip('0') or '0'
    if len(digits) > len(str(maximum)):
        raise ParseFailure(
            f"{where}: {len(digits)}-digit value is out of range (max {maximum})"
        )

    value = int(digits)
    if value > maximum:
        raise ParseFailure(f"{where}: {value} is out of range (max {maximum})")
    return value


def _format_uint(value: int, maximum: int, where: str) -> str:
    # bool is an int subclass but never a valid field value
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodeFailure(
            f"{where}: expected an integer, got {type(value).__name__}"
        )
    if not 0 <= value <= maximum:
        raise EncodeFailure(f"{where}: {value} is out of range (0..{maximum})")
    return str(value)


def _format_text(value: str, where: str) -> str:
    if not isinstance(value, str):
        raise EncodeFailure(f"{where}: expected a string, got {type(value).__name__}")

    bad = _XML_ILLEGAL_RE.search(value)
    if bad:
        raise EncodeFailure(
            f"{where}: character {bad.group()!r} cannot be written to XML"
        )
    return value


def _format_element_text(value: str, where: str) -> str:
    """
    Like _format_text, for element content rather than attributes.

    Parsers turn a carriage return in element content into a newline, so
    it would not read back as written. Attributes escape it as &#13;.
    """
    value = _format_text(value, where)
    if '\r' in value:
        raise EncodeFailure(
            f"{where}: carriage return cannot be written to element text"
        )
    return value


# =============================================================================
# ELEMENT HELPERS
# =============================================================================

def _require_child(elem: ET.Element, tag: str, where: str) -> ET.Element:
    child = elem.find(tag)
    if child is None:
        raise ParseFailure(f"{where}: missing required element <{tag}>")
    return child


def _read_text(elem: ET.Element, tag: str, where: str) -> str:
    """Text content of a required child element ('' when it is empty)."""
    return _require_child(elem, tag, where).text or ''


def _read_uint(elem: ET.Element, tag: str, maximum: int, where: str) -> int:
    child = _require_child(elem, tag, where)
    return _parse_uint(child.text, maximum, f"{where}.{tag}")


def _read_attr_uint(elem: ET.Element, name: str, maximum: int, where: str,
                    required: bool = True) -> Optional[int]:
    token = elem.get(name)
    if token is None:
        if required:
            raise ParseFailure(f"{where}: missing required attribute @{name}")
        return None
    return _parse_uint(token, maximum, f"{where}@{name}")


def _write_text(parent: ET.Element, tag: str, value: str) -> ET.Element:
    child = ET.SubElement(parent, tag)
    child.text = value
    return child


# =============================================================================
# PARAM CLASS
# =============================================================================

@dataclass
class Param:
    """
    Free-form key/value pair attached to an object or an event.

    Both sides are plain strings; the codec never interprets them. Order is
    preserved and the same key may appear more than once.

    XML format:
        <param key="speed" val="3"></param>
    """
    key: str                     # Parameter name
    value: str                   # Parameter value (wire attribute "val")

    @classmethod
    def from_xml(cls, elem: ET.Element, where: str = 'param') -> 'Param':
        """Parse param from XML element."""
        key = elem.get('key')
        if key is None:
            raise ParseFailure(f"{where}: missing required attribute @key")
        value = elem.get('val')
        if value is None:
            raise ParseFailure(f"{where}: missing required attribute @val")
        return cls(key=key, value=value)

    def to_xml(self, where: str = 'param') -> ET.Element:
        """Convert param back to XML element."""
        elem = ET.Element('param')
        elem.set('key', _format_text(self.key, f"{where}@key"))
        elem.set('val', _format_text(self.value, f"{where}@val"))
        return elem


# =============================================================================
# ROTATION ENUM
# =============================================================================

class Rotation(Enum):
    """
    Sprite orientation of a placed object.

    Member values are the exact tokens used by the "sprite_angle" attribute.
    No other angle can be represented.
    """
    ROTATE_0 = '0'
    ROTATE_90 = '90'
    ROTATE_180 = '180'
    ROTATE_270 = '270'

    @property
    def degrees(self) -> int:
        return int(self.value)

    @classmethod
    def from_token(cls, token: str, where: str = 'sprite_angle') -> 'Rotation':
        """Look up the member for a wire token, failing on anything else."""
        try:
            return cls(token.strip())
        except ValueError as err:
            raise ParseFailure(
                f"{where}: invalid rotation {token!r} "
                f"(expected one of 0, 90, 180, 270)"
            ) from err


# =============================================================================
# EVENT CLASS
# =============================================================================

@dataclass
class Event:
    """
    Scripted event attached to an object.

    Events form an n-ary tree: each event owns its params and any number of
    child events, kept in document order.

    ==========================================================================
    EMPTY EVENTS
    ==========================================================================

    An event with neither params nor children has only its eventIndex
    attribute. It is still written as an explicit pair:

        <event eventIndex="7"></event>

    See encode_level() for how every empty element gets this treatment.

    ==========================================================================
    """
    id: int                                          # Event index (u16)
    params: List[Param] = field(default_factory=list)
    children: List['Event'] = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element, where: str = 'event') -> 'Event':
        """
        Parse event (and its whole subtree) from XML element.

        The tree is walked with an explicit stack, so deep event nesting
        does not grow the Python call stack.
        """
        root = cls._from_xml_node(elem, where)
        stack = [(root, elem, where)]

        while stack:
            event, node, path = stack.pop()
            for i, child_elem in enumerate(node.findall('event')):
                child_path = f"{path}.event[{i}]"
                child = cls._from_xml_node(child_elem, child_path)
                event.children.append(child)
                stack.append((child, child_elem, child_path))

        return root

    @classmethod
    def _from_xml_node(cls, elem: ET.Element, where: str) -> 'Event':
        event = cls(id=_read_attr_uint(elem, 'eventIndex', U16_MAX, where))
        for i, param_elem in enumerate(elem.findall('param')):
            event.params.append(Param.from_xml(param_elem, f"{where}.param[{i}]"))
        return event

    def to_xml(self, where: str = 'event') -> ET.Element:
        """Convert event back to XML element (params first, then children)."""
        root = self._to_xml_node(where)
        stack = [(self, root, where, 1)]

        while stack:
            event, elem, path, depth = stack.pop()
            if event.children and depth >= MAX_ELEMENT_DEPTH:
                raise EncodeFailure(
                    f"{path}: events nested too deeply (limit {MAX_ELEMENT_DEPTH})"
                )
            for i, child in enumerate(event.children):
                child_path = f"{path}.event[{i}]"
                child_elem = child._to_xml_node(child_path)
                elem.append(child_elem)
                stack.append((child, child_elem, child_path, depth + 1))

        return root

    def _to_xml_node(self, where: str) -> ET.Element:
        elem = ET.Element('event')
        elem.set('eventIndex', _format_uint(self.id, U16_MAX, f"{where}@eventIndex"))
        for i, param in enumerate(self.params):
            elem.append(param.to_xml(f"{where}.param[{i}]"))
        return elem

    def walk(self) -> Iterator['Event']:
        """Yield this event and all descendants, depth first, in order."""
        stack = [self]
        while stack:
            event = stack.pop()
            yield event
            stack.extend(reversed(event.children))


# =============================================================================
# OBJECT CLASS
# =============================================================================

@dataclass
class Object:
    """
    Object placed on a map.

    ==========================================================================
    ATTRIBUTES
    ==========================================================================

    type_id:  Object type (wire attribute "type"), opaque to the codec
    x, y:     Position, opaque to the codec
    slot:     Optional slot number, omitted from the file when None
    rotation: Optional Rotation ("sprite_angle"), omitted when None

    ==========================================================================
    NESTED OBJECTS
    ==========================================================================

    An object may own ONE nested object, written as an <obj> child using
    the same attributes and children as <object>. Nested objects can nest
    again, so the result is a chain:

        <object type="1" x="0" y="0">
            <obj type="2" x="0" y="0">
                <obj type="3" x="0" y="0"></obj>
            </obj>
        </object>

    The chain is walked with a loop in both directions, so long chains do
    not grow the Python call stack. The whole document is still limited to
    MAX_ELEMENT_DEPTH levels of nesting.

    ==========================================================================
    """
    type_id: int                                     # Object type (u16)
    x: int                                           # X position (u32)
    y: int                                           # Y position (u32)
    slot: Optional[int] = None                       # Slot (u16)
    rotation: Optional[Rotation] = None              # Sprite angle
    events: List[Event] = field(default_factory=list)
    params: List[Param] = field(default_factory=list)
    nested: Optional['Object'] = None                # Single nested object

    @classmethod
    def from_xml(cls, elem: ET.Element, where: str = 'object') -> 'Object':
        """
        Parse object from XML element, including its nested <obj> chain.

        Parameters:
        -----------
        elem : ET.Element
            The <object> (or <obj>) element
        where : str
            Element path used in error messages
        """
        head = None
        parent = None
        node = elem

        while node is not None:
            obj = cls._from_xml_node(node, where)
            if parent is None:
                head = obj
            else:
                parent.nested = obj
            parent = obj

            nested_elems = node.findall('obj')
            if len(nested_elems) > 1:
                raise ParseFailure(
                    f"{where}: at most one nested <obj> is allowed, "
                    f"found {len(nested_elems)}"
                )
            node = nested_elems[0] if nested_elems else None
            where = f"{where}.obj"

        return head

    @classmethod
    def _from_xml_node(cls, elem: ET.Element, where: str) -> 'Object':
        obj = cls(
            type_id=_read_attr_uint(elem, 'type', U16_MAX, where),
            x=_read_attr_uint(elem, 'x', U32_MAX, where),
            y=_read_attr_uint(elem, 'y', U32_MAX, where),
            slot=_read_attr_uint(elem, 'slot', U16_MAX, where, required=False),
        )

        angle = elem.get('sprite_angle')
        if angle is not None:
            obj.rotation = Rotation.from_token(angle, f"{where}@sprite_angle")

        for i, event_elem in enumerate(elem.findall('event')):
            obj.events.append(Event.from_xml(event_elem, f"{where}.event[{i}]"))

        for i, param_elem in enumerate(elem.findall('param')):
            obj.params.append(Param.from_xml(param_elem, f"{where}.param[{i}]"))

        return obj

    def to_xml(self, where: str = 'object') -> ET.Element:
        """Convert object (and its nested chain) back to XML element."""
        root = None
        parent_elem = None
        node = self
        tag = 'object'
        seen = set()

        while node is not None:
            if id(node) in seen:
                raise EncodeFailure(f"{where}: nested object chain is cyclic")
            seen.add(id(node))

            elem = node._to_xml_node(tag, where)
            if parent_elem is None:
                root = elem
            else:
                parent_elem.append(elem)
            parent_elem = elem

            if node.nested is not None and not isinstance(node.nested, Object):
                raise EncodeFailure(
                    f"{where}.obj: expected an Object, got {type(node.nested).__name__}"
                )
            node = node.nested
            tag = 'obj'
            where = f"{where}.obj"

        return root

    def _to_xml_node(self, tag: str, where: str) -> ET.Element:
        elem = ET.Element(tag)
        elem.set('type', _format_uint(self.type_id, U16_MAX, f"{where}@type"))
        elem.set('x', _format_uint(self.x, U32_MAX, f"{where}@x"))
        elem.set('y', _format_uint(self.y, U32_MAX, f"{where}@y"))

        # Optional attributes are left out entirely when unset
        if self.slot is not None:
            elem.set('slot', _format_uint(self.slot, U16_MAX, f"{where}@slot"))
        if self.rotation is not None:
            if not isinstance(self.rotation, Rotation):
                raise EncodeFailure(
                    f"{where}@sprite_angle: expected a Rotation, "
                    f"got {type(self.rotation).__name__}"
                )
            elem.set('sprite_angle', self.rotation.value)

        for i, event in enumerate(self.events):
            elem.append(event.to_xml(f"{where}.event[{i}]"))

        for i, param in enumerate(self.params):
            elem.append(param.to_xml(f"{where}.param[{i}]"))

        return elem

    def chain(self) -> Iterator['Object']:
        """Yield this object followed by every nested object."""
        node = self
        while node is not None:
            yield node
            node = node.nested


# =============================================================================
# MAP CLASSES
# =============================================================================

# Wire order of the <head> children (num_objects is appended by Map)
MAP_HEAD_FIELDS = (
    'name', 'version', 'tileset', 'tileset2', 'bg', 'spikes', 'spikes2',
    'width', 'height', 'colors', 'scroll_mode', 'music',
)
_MAP_HEAD_TEXT_FIELDS = frozenset({'name', 'colors'})


@dataclass
class MapHead:
    """
    Header of a single submap.

    All numeric fields are u16. `colors` is an opaque blob written by the
    editor; it is carried through untouched.
    """
    name: str                    # Submap name
    version: int = 0             # Format version
    tileset: int = 0             # Foreground tileset
    tileset2: int = 0            # Secondary tileset
    bg: int = 0                  # Background
    spikes: int = 0              # Spike set
    spikes2: int = 0             # Secondary spike set
    width: int = 0               # Width in pixels
    height: int = 0              # Height in pixels
    colors: str = ''             # Opaque color table
    scroll_mode: int = 0         # Camera scroll mode
    music: int = 0               # Music track

    @classmethod
    def from_xml(cls, elem: ET.Element, where: str = 'head') -> 'MapHead':
        """Parse map header from the <head> element (num_objects is skipped)."""
        values = {}
        for name in MAP_HEAD_FIELDS:
            if name in _MAP_HEAD_TEXT_FIELDS:
                values[name] = _read_text(elem, name, where)
            else:
                values[name] = _read_uint(elem, name, U16_MAX, where)
        return cls(**values)

    def to_xml(self, num_objects: int, where: str = 'head') -> ET.Element:
        """
        Convert map header back to XML element.

        Parameters:
        -----------
        num_objects : int
            Object count of the owning map, written as <num_objects>
        """
        elem = ET.Element('head')
        for name in MAP_HEAD_FIELDS:
            value = getattr(self, name)
            if name in _MAP_HEAD_TEXT_FIELDS:
                _write_text(elem, name, _format_element_text(value, f"{where}.{name}"))
            else:
                _write_text(elem, name, _format_uint(value, U16_MAX, f"{where}.{name}"))

        _write_text(elem, 'num_objects',
                    _format_uint(num_objects, U32_MAX, f"{where}.num_objects"))
        return elem


@dataclass
class Map:
    """
    One submap: a header plus the objects placed on it.

    ==========================================================================
    OBJECT COUNT
    ==========================================================================

    The file stores <num_objects> in the header. It is never kept here:

    - Writing: computed from len(objects)
    - Reading: the object list is rebuilt from the <object> elements that
      are actually present. A stored count that disagrees is logged as a
      warning and otherwise ignored.

    ==========================================================================
    """
    head: MapHead
    objects: List[Object] = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element, where: str = 'sfm_map') -> 'Map':
        """Parse map from the <sfm_map> element."""
        head_elem = _require_child(elem, 'head', where)
        sfm_map = cls(head=MapHead.from_xml(head_elem, f"{where}.head"))

        objects_elem = _require_child(elem, 'objects', where)
        for i, obj_elem in enumerate(objects_elem.findall('object')):
            sfm_map.objects.append(
                Object.from_xml(obj_elem, f"{where}.objects.object[{i}]")
            )

        # -----------------------------------------------------------------
        # STORED COUNT
        # -----------------------------------------------------------------
        # Must still be a valid number when present, but never drives
        # the result
        count_elem = head_elem.find('num_objects')
        if count_elem is not None:
            stored = _parse_uint(count_elem.text, U32_MAX, f"{where}.head.num_objects")
            if stored != len(sfm_map.objects):
                structlog.get_logger(__name__).warning(
                    "object_count_mismatch",
                    map=where,
                    stored=stored,
                    actual=len(sfm_map.objects),
                )

        return sfm_map

    def to_xml(self, where: str = 'sfm_map') -> ET.Element:
        """Convert map back to XML element."""
        elem = ET.Element('sfm_map')
        elem.append(self.head.to_xml(len(self.objects), f"{where}.head"))

        objects_elem = ET.SubElement(elem, 'objects')
        for i, obj in enumerate(self.objects):
            objects_elem.append(obj.to_xml(f"{where}.objects.object[{i}]"))

        return elem


# =============================================================================
# LEVEL CLASSES
# =============================================================================

@dataclass
class LevelHead:
    """
    Document-wide metadata (<maps_head>).

    submap_order lists submap identifiers; each one is written as
    <map id="N"></map> inside <submap_order>. The codec does not check
    the identifiers against the maps actually present.
    """
    name: str                                        # Level name
    version: int = 0                                 # Format version (u16)
    screenshot_submap: int = 0                       # Submap used for thumbnails
    last_submap: int = 0                             # Last edited submap
    submap_order: List[int] = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element, where: str = 'maps_head') -> 'LevelHead':
        """Parse level header from the <maps_head> element."""
        head = cls(
            name=_read_text(elem, 'maps_name', where),
            version=_read_uint(elem, 'maps_version', U16_MAX, where),
            screenshot_submap=_read_uint(elem, 'screenshot_submap', U16_MAX, where),
            last_submap=_read_uint(elem, 'last_submap', U16_MAX, where),
        )

        order_elem = _require_child(elem, 'submap_order', where)
        for i, map_elem in enumerate(order_elem.findall('map')):
            # Only the id matters, any text content is ignored
            head.submap_order.append(
                _read_attr_uint(map_elem, 'id', U16_MAX, f"{where}.submap_order.map[{i}]")
            )

        return head

    def to_xml(self, where: str = 'maps_head') -> ET.Element:
        """Convert level header back to XML element."""
        elem = ET.Element('maps_head')
        _write_text(elem, 'maps_name', _format_element_text(self.name, f"{where}.maps_name"))
        _write_text(elem, 'maps_version',
                    _format_uint(self.version, U16_MAX, f"{where}.maps_version"))
        _write_text(elem, 'screenshot_submap',
                    _format_uint(self.screenshot_submap, U16_MAX, f"{where}.screenshot_submap"))
        _write_text(elem, 'last_submap',
                    _format_uint(self.last_submap, U16_MAX, f"{where}.last_submap"))

        order_elem = ET.SubElement(elem, 'submap_order')
        for i, submap_id in enumerate(self.submap_order):
            map_elem = ET.SubElement(order_elem, 'map')
            map_elem.set('id', _format_uint(
                submap_id, U16_MAX, f"{where}.submap_order.map[{i}]@id"))

        return elem


@dataclass
class Level:
    """
    Complete SFM level - the root object for sfm_maps files.

    The position of each map in `maps` is its submap index, which is what
    LevelHead.submap_order and the host refer to.
    """
    head: LevelHead
    maps: List[Map] = field(default_factory=list)

    @classmethod
    def from_xml(cls, root: ET.Element) -> 'Level':
        """Parse level from the <sfm_maps> root element."""
        if root.tag != 'sfm_maps':
            raise ParseFailure(f"expected root element <sfm_maps>, got <{root.tag}>")

        level = cls(head=LevelHead.from_xml(_require_child(root, 'maps_head', 'sfm_maps')))
        for i, map_elem in enumerate(root.findall('sfm_map')):
            level.maps.append(Map.from_xml(map_elem, f"sfm_map[{i}]"))
        return level

    def to_xml(self) -> ET.Element:
        """Convert level back to the <sfm_maps> root element."""
        root = ET.Element('sfm_maps')
        root.append(self.head.to_xml())
        for i, sfm_map in enumerate(self.maps):
            root.append(sfm_map.to_xml(f"sfm_map[{i}]"))
        return root


# =============================================================================
# CODEC
# =============================================================================

def decode_level(text: Union[str, bytes]) -> Level:
    """
    Decode sfm_maps markup into a Level.

    Parameters:
    -----------
    text : str or bytes
        The whole document

    Returns:
    --------
    Level : Parsed level

    Raises:
    -------
    ParseFailure : If the markup is malformed, a required element or
                   attribute is missing, a value does not fit its type, or
                   elements nest deeper than MAX_ELEMENT_DEPTH
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as err:
        raise ParseFailure(f"malformed XML: {err}") from err

    # A level decoded here must also encode again
    depth = _element_depth(root)
    if depth > MAX_ELEMENT_DEPTH:
        raise ParseFailure(
            f"document nested too deeply ({depth} levels, limit {MAX_ELEMENT_DEPTH})"
        )

    level = Level.from_xml(root)

    structlog.get_logger(__name__).debug(
        "level_decoded", name=level.head.name, maps=len(level.maps)
    )
    return level


def encode_level(level: Level, pretty: bool = False,
                 xml_declaration: bool = False) -> str:
    """
    Encode a Level as sfm_maps markup.

    =======================================================================
    EMPTY ELEMENTS
    =======================================================================

    ElementTree normally collapses an element with no text and no
    children to <tag/>. The host rejects that form for <map> and <event>
    entries, so serialization runs with short_empty_elements=False and
    every empty element comes out as <tag></tag>. The output is final as
    produced; nothing is patched in the text afterwards.

    =======================================================================

    Parameters:
    -----------
    level : Level
        The level to write
    pretty : bool
        Indent nested elements. Leaf text is not touched, so the result
        decodes to the same level.
    xml_declaration : bool
        Prefix the document with an XML declaration

    Raises:
    -------
    EncodeFailure : If a field does not fit its wire type, or events or
                    nested objects go deeper than MAX_ELEMENT_DEPTH
    """
    root = level.to_xml()

    depth = _element_depth(root)
    if depth > MAX_ELEMENT_DEPTH:
        raise EncodeFailure(
            f"level nested too deeply ({depth} levels, limit {MAX_ELEMENT_DEPTH})"
        )

    if pretty:
        _indent(root)

    try:
        text = ET.tostring(root, encoding='unicode', short_empty_elements=False)
    except (TypeError, ValueError, RecursionError) as err:
        raise EncodeFailure(f"could not serialize level: {err}") from err

    if xml_declaration:
        text = XML_DECLARATION + text

    structlog.get_logger(__name__).debug(
        "level_encoded", name=level.head.name, maps=len(level.maps), chars=len(text)
    )
    return text


def _element_depth(root: ET.Element) -> int:
    """Nesting depth of the tree under root (root alone is 1)."""
    deepest = 0
    stack = [(root, 1)]
    while stack:
        elem, depth = stack.pop()
        deepest = max(deepest, depth)
        stack.extend((child, depth + 1) for child in elem)
    return deepest


def _indent(elem: ET.Element, level: int = 0):
    """
    Add indentation to XML for readable output.

    Only elements that have children get whitespace text, so leaf values
    such as <maps_name> keep their exact content.
    """
    indent = "\n" + "  " * level

    if len(elem):  # Has children
        if not elem.text or not elem.text.strip():
            elem.text = indent + "  "
        if not elem.tail or not elem.tail.strip():
            elem.tail = indent

        for child in elem:
            _indent(child, level + 1)

        # Last child's tail
        if not child.tail or not child.tail.strip():
            child.tail = indent
    else:
        if level and (not elem.tail or not elem.tail.strip()):
            elem.tail = indent


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

# Stock color table written by the editor for a fresh level
DEFAULT_COLORS = "5A0200000600000005" + "0" * 726


def create_generic_level(name: str) -> Level:
    """
    Create a minimal level with one empty submap.

    Uses the same header values the editor writes for a new level.

    Parameters:
    -----------
    name : str
        Used both as the level name and the name of its only submap

    Returns:
    --------
    Level : Level ready for adding objects
    """
    return Level(
        head=LevelHead(
            name=name,
            version=103,
            screenshot_submap=0,
            last_submap=0,
            submap_order=[0],
        ),
        maps=[
            Map(head=MapHead(
                name=name,
                version=103,
                tileset=20,
                tileset2=20,
                bg=1,
                spikes=4,
                spikes2=40,
                width=1600,
                height=608,
                colors=DEFAULT_COLORS,
                scroll_mode=0,
                music=60,
            )),
        ],
    )


# =============================================================================
# EXAMPLE USAGE (when run directly)
# =============================================================================

if __name__ == "__main__":
    print("=" * 60)
    print("SFM Manager - Example Usage")
    print("=" * 60)

    level = create_generic_level("Example")
    level.maps[0].objects.append(Object(
        type_id=12, x=64, y=128, rotation=Rotation.ROTATE_90,
        events=[Event(id=3, params=[Param("delay", "10")])],
        params=[Param("color", "red")],
    ))

    text = encode_level(level, pretty=True)
    print(text)
    print(f"Round trip equal: {decode_level(text) == level}")
