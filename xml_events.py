# xml_events.py
"""
Event-stream XML document model.

A document is an ordered list of Open / Text / Close events rendered by a
single deterministic serializer. Signatures are computed over exactly the
string serialize() returns, so the rendering rules below are a contract:

- attributes keep insertion order
- no whitespace is ever added
- an element with no content renders as <Name .../>
- text escapes & < >, attribute values also escape " and the
  whitespace characters a parser would normalize (tab, CR, LF)
"""
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple, Union
from xml.sax.saxutils import escape

from lxml import etree

from errors import MalformedDocumentError

Attributes = Tuple[Tuple[str, str], ...]

_ATTRIBUTE_ENTITIES = {'"': "&quot;", "\n": "&#10;", "\r": "&#13;", "\t": "&#9;"}


class Open(NamedTuple):
    name: str
    attributes: Attributes = ()


class Text(NamedTuple):
    content: str


class Close(NamedTuple):
    name: str


Event = Union[Open, Text, Close]


def open_tag(name: str, *attributes: Tuple[str, str]) -> Open:
    return Open(name, tuple(attributes))


def text_element(name: str, content: str, *attributes: Tuple[str, str]) -> List[Event]:
    """<name>content</name> as three events"""
    return [Open(name, tuple(attributes)), Text(content), Close(name)]


def empty_element(name: str, *attributes: Tuple[str, str]) -> List[Event]:
    return [Open(name, tuple(attributes)), Close(name)]


def check_well_formed(events: Iterable[Event]) -> None:
    """
    Raise MalformedDocumentError unless every Close matches the most recent
    unmatched Open, no text sits outside an element and nothing stays open.
    """
    stack = []
    for position, event in enumerate(events):
        if isinstance(event, Open):
            stack.append(event.name)
        elif isinstance(event, Close):
            if not stack:
                raise MalformedDocumentError(
                    f"event {position}: </{event.name}> closes nothing"
                )
            expected = stack.pop()
            if expected != event.name:
                raise MalformedDocumentError(
                    f"event {position}: </{event.name}> does not match <{expected}>"
                )
        elif isinstance(event, Text):
            if not stack and event.content:
                raise MalformedDocumentError(
                    f"event {position}: text outside of any element"
                )
        else:
            raise MalformedDocumentError(f"event {position}: unknown event {event!r}")
    if stack:
        raise MalformedDocumentError(f"unclosed elements: {', '.join(stack)}")


def _render_open(event: Open) -> str:
    parts = [event.name]
    for name, value in event.attributes:
        value = escape(value, _ATTRIBUTE_ENTITIES)
        parts.append(f'{name}="{value}"')
    return "<" + " ".join(parts)


def serialize(events: Sequence[Event]) -> str:
    """Render a well-formed event sequence to its exact string form"""
    events = list(events)
    check_well_formed(events)

    out = []
    # True while the last start tag still lacks its closing ">" or "/>"
    pending = False
    for event in events:
        if isinstance(event, Open):
            if pending:
                out.append(">")
            out.append(_render_open(event))
            pending = True
        elif isinstance(event, Text):
            if not event.content:
                continue
            if pending:
                out.append(">")
                pending = False
            out.append(escape(event.content))
        else:
            if pending:
                out.append("/>")
                pending = False
            else:
                out.append(f"</{event.name}>")
    return "".join(out)


def _element_events(element, parent_namespace: Optional[str], events: List[Event]) -> None:
    qname = etree.QName(element)
    attributes = []
    if qname.namespace != parent_namespace:
        attributes.append(("xmlns", qname.namespace or ""))
    for name, value in element.attrib.items():
        attributes.append((etree.QName(name).localname, value))

    events.append(Open(qname.localname, tuple(attributes)))
    if element.text:
        events.append(Text(element.text))
    for child in element:
        if isinstance(child.tag, str):
            _element_events(child, qname.namespace, events)
        if child.tail:
            events.append(Text(child.tail))
    events.append(Close(qname.localname))


def parse(xml: str) -> List[Event]:
    """
    Read an XML string back into events. A change of default namespace is
    reported as a leading xmlns attribute, the way the builders emit it.
    """
    root = etree.fromstring(xml.encode('utf-8'))
    events: List[Event] = []
    _element_events(root, None, events)
    return events
