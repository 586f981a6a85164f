"""SVG measurement in root user space.

Supported:
- shapes: rect, image, use, foreignObject, nested svg, circle, ellipse, line,
  polyline, polygon, path (endpoints and control points), text/tspan anchors
- containers: g, a, symbol (union of measurable children), switch (first
  measurable child)
- a box with neither width nor height is not measurable
- transforms: matrix, translate, scale, rotate, skewX, skewY, composed with
  every ancestor up to the root ``<svg>``
"""

from __future__ import annotations

import math
import re

from lxml import etree

from core.geometry.models import BoundingBox
from core.scanning.markup import local_name
from core.utils.errors import MeasurementError

Matrix = tuple[float, float, float, float, float, float]
Point = tuple[float, float]

IDENTITY: Matrix = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)
OVERLAY_MARKER_ATTRIBUTE = "data-svgbind-overlay"

_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_LENGTH_RE = re.compile(r"^\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)\s*(px)?\s*$")
_TRANSFORM_RE = re.compile(r"(matrix|translate|scale|rotate|skewX|skewY)\s*\(([^)]*)\)")
_PATH_TOKEN_RE = re.compile(
    r"[MmLlHhVvCcSsQqTtAaZz]|[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"
)

_BOX_SHAPES = {"rect", "image", "use", "foreignObject"}
_CONTAINERS = {"g", "a", "switch", "symbol", "svg"}
_TEXT_SHAPES = {"text", "tspan", "textPath"}
_NOT_RENDERED = {
    "defs",
    "clipPath",
    "mask",
    "marker",
    "pattern",
    "linearGradient",
    "radialGradient",
    "filter",
    "title",
    "desc",
    "metadata",
    "style",
    "script",
}
_PATH_ARITY = {"M": 2, "L": 2, "H": 1, "V": 1, "C": 6, "S": 4, "Q": 4, "T": 2, "A": 7, "Z": 0}


def multiply(left: Matrix, right: Matrix) -> Matrix:
    a1, b1, c1, d1, e1, f1 = left
    a2, b2, c2, d2, e2, f2 = right
    return (
        a1 * a2 + c1 * b2,
        b1 * a2 + d1 * b2,
        a1 * c2 + c1 * d2,
        b1 * c2 + d1 * d2,
        a1 * e2 + c1 * f2 + e1,
        b1 * e2 + d1 * f2 + f1,
    )


def apply(matrix: Matrix, point: Point) -> Point:
    a, b, c, d, e, f = matrix
    x, y = point
    return (a * x + c * y + e, b * x + d * y + f)


def parse_transform(value: str | None) -> Matrix:
    """Compose an SVG transform list left to right."""

    matrix = IDENTITY
    if not value:
        return matrix

    for name, raw_args in _TRANSFORM_RE.findall(value):
        args = [float(item) for item in _NUMBER_RE.findall(raw_args)]
        matrix = multiply(matrix, _transform_matrix(name, args))
    return matrix


def parse_length(value: str | None, *, default: float | None = None) -> float:
    """Parse a user-unit or px length; anything else is not measurable."""

    if value is None:
        if default is None:
            raise MeasurementError("missing length")
        return default
    found = _LENGTH_RE.match(value)
    if found is None:
        raise MeasurementError(f"unsupported length: {value!r}")
    return float(found.group(1))


def measure_element(element: etree._Element, root: etree._Element) -> BoundingBox:
    """Bounding box of ``element`` in the user space of ``root``."""

    ctm = _ancestor_matrix(element, root)
    points = _collect_points(element, ctm, is_root=element is root)
    if not points:
        raise MeasurementError(f"<{local_name(element)}> has no measurable geometry")
    box = BoundingBox.from_points(points)
    if box.width == 0 and box.height == 0:
        raise MeasurementError(f"<{local_name(element)}> has no area")
    return box


def document_dimensions(root: etree._Element) -> tuple[float, float] | None:
    """Width/height from root attributes, falling back to the viewBox."""

    try:
        return parse_length(root.get("width")), parse_length(root.get("height"))
    except MeasurementError:
        pass

    view_box = root.get("viewBox")
    if view_box:
        numbers = [float(item) for item in _NUMBER_RE.findall(view_box)]
        if len(numbers) == 4:
            return numbers[2], numbers[3]
    return None


def _transform_matrix(name: str, args: list[float]) -> Matrix:
    if name == "matrix" and len(args) == 6:
        return (args[0], args[1], args[2], args[3], args[4], args[5])
    if name == "translate" and args:
        return (1.0, 0.0, 0.0, 1.0, args[0], args[1] if len(args) > 1 else 0.0)
    if name == "scale" and args:
        sx = args[0]
        sy = args[1] if len(args) > 1 else sx
        return (sx, 0.0, 0.0, sy, 0.0, 0.0)
    if name == "rotate" and args:
        radians = math.radians(args[0])
        cos, sin = math.cos(radians), math.sin(radians)
        rotation: Matrix = (cos, sin, -sin, cos, 0.0, 0.0)
        if len(args) >= 3:
            cx, cy = args[1], args[2]
            to_center: Matrix = (1.0, 0.0, 0.0, 1.0, cx, cy)
            from_center: Matrix = (1.0, 0.0, 0.0, 1.0, -cx, -cy)
            return multiply(multiply(to_center, rotation), from_center)
        return rotation
    if name == "skewX" and args:
        return (1.0, 0.0, math.tan(math.radians(args[0])), 1.0, 0.0, 0.0)
    if name == "skewY" and args:
        return (1.0, math.tan(math.radians(args[0])), 0.0, 1.0, 0.0, 0.0)
    raise MeasurementError(f"malformed transform: {name}({', '.join(map(str, args))})")


def _ancestor_matrix(element: etree._Element, root: etree._Element) -> Matrix:
    chain: list[etree._Element] = []
    parent = element.getparent()
    while parent is not None and parent is not root:
        chain.append(parent)
        parent = parent.getparent()
    if parent is None and element is not root:
        raise MeasurementError("element is not part of the rendered document")

    matrix = IDENTITY
    for ancestor in reversed(chain):
        matrix = multiply(matrix, _own_matrix(ancestor))
    return matrix


def _own_matrix(element: etree._Element) -> Matrix:
    matrix = parse_transform(element.get("transform"))
    if local_name(element) == "svg":
        offset: Matrix = (
            1.0,
            0.0,
            0.0,
            1.0,
            parse_length(element.get("x"), default=0.0),
            parse_length(element.get("y"), default=0.0),
        )
        matrix = multiply(matrix, offset)
    return matrix


def _collect_points(element: etree._Element, ctm: Matrix, *, is_root: bool = False) -> list[Point]:
    tag = local_name(element)
    if tag in _NOT_RENDERED or element.get("display") == "none":
        return []
    if element.get(OVERLAY_MARKER_ATTRIBUTE) is not None:
        return []

    matrix = ctm if is_root else multiply(ctm, _own_matrix(element))

    if tag in _BOX_SHAPES or (tag == "svg" and not is_root and element.get("width")):
        return [apply(matrix, point) for point in _box_points(element, nested_svg=tag == "svg")]
    if tag in _CONTAINERS:
        return _container_points(element, matrix, first_only=tag == "switch")
    if tag in _TEXT_SHAPES:
        x = parse_length(_first_coordinate(element.get("x")), default=0.0)
        y = parse_length(_first_coordinate(element.get("y")), default=0.0)
        return [apply(matrix, (x, y))]

    local = _shape_points(element, tag)
    return [apply(matrix, point) for point in local]


def _container_points(
    element: etree._Element, matrix: Matrix, *, first_only: bool = False
) -> list[Point]:
    """Union of measurable children; a ``switch`` renders only its first one.

    Unmeasurable children are skipped. The last failure is raised only when
    some child failed and none could be measured.
    """

    points: list[Point] = []
    failure: MeasurementError | None = None
    for child in element.iterchildren(etree.Element):
        try:
            child_points = _collect_points(child, matrix)
        except MeasurementError as exc:
            failure = exc
            continue
        if not child_points:
            continue
        if first_only:
            return child_points
        points.extend(child_points)

    if not points and failure is not None:
        raise failure
    return points


def _box_points(element: etree._Element, *, nested_svg: bool = False) -> list[Point]:
    # nested svg x/y are already folded into its own matrix
    x = 0.0 if nested_svg else parse_length(element.get("x"), default=0.0)
    y = 0.0 if nested_svg else parse_length(element.get("y"), default=0.0)
    width = parse_length(element.get("width"))
    height = parse_length(element.get("height"))
    return [(x, y), (x + width, y), (x, y + height), (x + width, y + height)]


def _shape_points(element: etree._Element, tag: str) -> list[Point]:
    if tag == "circle":
        cx = parse_length(element.get("cx"), default=0.0)
        cy = parse_length(element.get("cy"), default=0.0)
        r = parse_length(element.get("r"))
        return [(cx - r, cy - r), (cx + r, cy + r), (cx - r, cy + r), (cx + r, cy - r)]
    if tag == "ellipse":
        cx = parse_length(element.get("cx"), default=0.0)
        cy = parse_length(element.get("cy"), default=0.0)
        rx = parse_length(element.get("rx"))
        ry = parse_length(element.get("ry"))
        return [(cx - rx, cy - ry), (cx + rx, cy + ry), (cx - rx, cy + ry), (cx + rx, cy - ry)]
    if tag == "line":
        return [
            (
                parse_length(element.get("x1"), default=0.0),
                parse_length(element.get("y1"), default=0.0),
            ),
            (
                parse_length(element.get("x2"), default=0.0),
                parse_length(element.get("y2"), default=0.0),
            ),
        ]
    if tag in {"polyline", "polygon"}:
        numbers = [float(item) for item in _NUMBER_RE.findall(element.get("points") or "")]
        return list(zip(numbers[0::2], numbers[1::2], strict=False))
    if tag == "path":
        return _path_points(element.get("d") or "")
    return []


def _first_coordinate(value: str | None) -> str | None:
    if value is None:
        return None
    parts = value.replace(",", " ").split()
    return parts[0] if parts else None


def _path_points(d: str) -> list[Point]:
    tokens = _PATH_TOKEN_RE.findall(d)
    points: list[Point] = []
    x = y = 0.0
    start = (0.0, 0.0)
    command = ""
    index = 0

    while index < len(tokens):
        token = tokens[index]
        if token.isalpha():
            command = token
            index += 1
            if command in {"Z", "z"}:
                x, y = start
                points.append(start)
            continue
        if not command:
            raise MeasurementError("path data must start with a command")

        upper = command.upper()
        arity = _PATH_ARITY[upper]
        if arity == 0 or index + arity > len(tokens):
            break
        args = [float(item) for item in tokens[index : index + arity]]
        index += arity
        relative = command.islower()

        if upper == "H":
            x = args[0] + (x if relative else 0.0)
            points.append((x, y))
        elif upper == "V":
            y = args[0] + (y if relative else 0.0)
            points.append((x, y))
        elif upper == "A":
            end_x = args[5] + (x if relative else 0.0)
            end_y = args[6] + (y if relative else 0.0)
            x, y = end_x, end_y
            points.append((x, y))
        else:
            pairs = list(zip(args[0::2], args[1::2], strict=False))
            if relative:
                pairs = [(px + x, py + y) for px, py in pairs]
            points.extend(pairs)
            x, y = pairs[-1]
            if upper == "M":
                start = (x, y)
                # further pairs after M are implicit line-to commands
                command = "l" if relative else "L"

    return points
