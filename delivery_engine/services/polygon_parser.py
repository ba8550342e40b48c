"""
Polygon parser - turns a restaurant's raw geofence into ordered vertices.

Accepted inputs:
- A KML document: every <coordinates> element is read, in document order.
- Plain vertex text: whitespace/newline separated "lng,lat[,alt]" tokens.

Vertices come back as Coordinate(lat, lng); KML stores longitude first.
"""
import logging
import math
import xml.etree.ElementTree as ET
from typing import List, Optional

from delivery_engine.exceptions import InvalidPolygonDescription, ValidationError
from delivery_engine.models import Coordinate

logger = logging.getLogger(__name__)


def _local_name(tag: str) -> str:
    """Strip the XML namespace ("{http://www.opengis.net/kml/2.2}coordinates")."""
    return tag.rsplit('}', 1)[-1]


def _parse_token(token: str) -> Optional[Coordinate]:
    parts = token.split(',')
    if len(parts) < 2:
        return None
    try:
        lng = float(parts[0])
        lat = float(parts[1])
    except ValueError:
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    try:
        return Coordinate(latitude=lat, longitude=lng)
    except ValidationError:
        return None


def parse_vertex_text(text: str) -> List[Coordinate]:
    """Parse "lng,lat[,alt]" tokens, skipping malformed ones."""
    vertices = []
    for token in text.split():
        coordinate = _parse_token(token)
        if coordinate is None:
            logger.debug(f"[GEOFENCE] Skipping malformed vertex token: {token!r}")
            continue
        vertices.append(coordinate)
    return vertices


def _parse_kml(document: str) -> List[Coordinate]:
    try:
        root = ET.fromstring(document)
    except ET.ParseError as e:
        raise InvalidPolygonDescription(
            f"La geocerca no es un documento KML válido: {e}",
            payload={'reason': str(e)}
        )

    vertices = []
    for element in root.iter():
        if _local_name(element.tag) == 'coordinates' and element.text:
            vertices.extend(parse_vertex_text(element.text))
    return vertices


def parse_polygon(raw: Optional[str]) -> List[Coordinate]:
    """
    Parse a raw geofence description into an ordered list of vertices.

    Empty or missing descriptions yield []. Fewer than 3 vertices is not an
    error here; callers treat that as "no geofence".

    Raises:
        InvalidPolygonDescription: if the description is markup that is not
            well-formed XML.
    """
    if raw is None:
        return []

    text = raw.strip()
    if not text:
        return []

    if text.startswith('<'):
        return _parse_kml(text)
    return parse_vertex_text(text)
