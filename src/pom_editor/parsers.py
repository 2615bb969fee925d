import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple
from xml.parsers import expat
from xml.sax.saxutils import escape

from .cli_config import get_config
from .dependency import DEFAULT_TYPE
from .error_handling import (
    ErrorCallback,
    ErrorCategory,
    ManifestError,
    get_error_handler,
    log_parsing_error,
)

POM_NAMESPACE = "http://maven.apache.org/POM/4.0.0"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"

_BOM = "\ufeff"

# (local name, occurrence among same-named siblings) from the root down
ElementPath = Tuple[Tuple[str, int], ...]


def _validate_file_path(file_path: str) -> Path:
    """
    Validate the manifest path before it is read or edited.

    Args:
        file_path: The file path to validate

    Returns:
        Path: Validated and resolved path object

    Raises:
        ManifestError: If path is invalid or unsafe
    """
    if not file_path or not isinstance(file_path, (str, Path)):
        raise ManifestError("File path must be a non-empty string")

    try:
        path = Path(file_path).resolve()
    except (OSError, ValueError) as e:
        raise ManifestError(f"Invalid file path: {e}")

    if not path.exists():
        raise ManifestError(f"File does not exist: {path}")

    if not path.is_file():
        raise ManifestError(f"Path is not a file: {path}")

    config = get_config()
    allowed_extensions = {ext.lower() for ext in config.security.allowed_file_extensions}
    if path.suffix.lower() not in allowed_extensions:
        raise ManifestError(f"File type not allowed: {path.suffix}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise ManifestError(f"Cannot access file: {e}")
    max_file_size = config.security.max_file_size_bytes
    if file_size > max_file_size:
        raise ManifestError(
            f"File too large: {file_size} bytes (max: {max_file_size})"
        )

    return path


def _safe_read_file(path: Path) -> str:
    try:
        with open(path, encoding="utf-8", newline="") as f:
            return f.read()
    except UnicodeDecodeError:
        raise ManifestError("File contains invalid UTF-8 characters")
    except PermissionError:
        raise ManifestError("Permission denied reading file")
    except OSError as e:
        raise ManifestError(f"Error reading file: {e}")


def local_name(element: ET.Element) -> Optional[str]:
    """Tag name without namespace; ``None`` for comments and PIs."""
    if not isinstance(element.tag, str):
        return None
    return element.tag.split("}")[-1] if "}" in element.tag else element.tag


def _tag_end(data: bytes, start: int) -> int:
    """Offset just past the ``>`` closing the tag that starts at ``start``."""
    quote = None
    for index in range(start, len(data)):
        char = data[index:index + 1]
        if quote:
            if char == quote:
                quote = None
        elif char in (b'"', b"'"):
            quote = char
        elif char == b">":
            return index + 1
    raise ManifestError(f"Unterminated tag at offset {start}")


class SourceIndex:
    """
    Byte offsets of every element in the raw source.

    ``inner`` maps an element path to the span between its start and end
    tags (missing for empty-element tags); ``root_span`` covers the whole
    root element, so everything outside it is prolog or epilog.
    """

    def __init__(self, data: bytes):
        self.data = data
        self.inner: Dict[ElementPath, Tuple[int, int]] = {}
        self.root_span: Tuple[int, int] = (0, len(data))
        # open elements: path, child name counts, start offset, start tag end
        self._stack: List[Tuple[ElementPath, Dict[str, int], int, int]] = []
        self._counts: Dict[str, int] = {}

        self._parser = expat.ParserCreate()
        self._parser.StartElementHandler = self._start
        self._parser.EndElementHandler = self._end
        self._parser.Parse(data, True)

    def _start(self, name, attributes):
        name = name.split(":")[-1]
        if self._stack:
            parent_path, counts = self._stack[-1][0], self._stack[-1][1]
        else:
            parent_path, counts = (), self._counts
        occurrence = counts.get(name, 0)
        counts[name] = occurrence + 1

        start = self._parser.CurrentByteIndex
        self._stack.append(
            (parent_path + ((name, occurrence),), {}, start, _tag_end(self.data, start))
        )

    def _end(self, name):
        path, _, start, tag_end = self._stack.pop()
        if self.data[tag_end - 2:tag_end] == b"/>":
            end = tag_end
        else:
            close = self._parser.CurrentByteIndex
            self.inner[path] = (tag_end, close)
            end = _tag_end(self.data, close)
        if not self._stack:
            self.root_span = (start, end)


@dataclass
class PomDocument:
    """
    A parsed POM plus what is needed to write it back faithfully.

    Text-only edits (see :meth:`replace_text`) are applied to the original
    source so every other byte stays as it was. Structural edits mark the
    document ``restructured``; it is then re-serialized between the
    untouched prolog (declaration, comments, DOCTYPE) and epilog.
    """

    path: Path
    root: ET.Element
    namespace: Optional[str]
    original_text: str
    source: SourceIndex
    bom: bool = False
    newline: str = "\n"
    restructured: bool = False
    patches: List[Tuple[int, int, bytes]] = field(default_factory=list, repr=False)

    def tag(self, name: str) -> str:
        """Qualified tag for ``name`` in this document's namespace."""
        return f"{{{self.namespace}}}{name}" if self.namespace else name

    def child(self, parent: ET.Element, name: str) -> Optional[ET.Element]:
        for element in parent:
            if local_name(element) == name:
                return element
        return None

    def children(self, parent: ET.Element, name: str) -> Iterator[ET.Element]:
        for element in parent:
            if local_name(element) == name:
                yield element

    def child_text(self, parent: ET.Element, name: str) -> Optional[str]:
        element = self.child(parent, name)
        if element is None or element.text is None:
            return None
        return element.text.strip() or None

    def path_of(self, element: ET.Element) -> ElementPath:
        parents = {child: parent for parent in self.root.iter() for child in parent}
        steps = []
        while element is not self.root:
            parent = parents[element]
            name = local_name(element)
            siblings = [e for e in parent if local_name(e) == name]
            steps.append((name, siblings.index(element)))
            element = parent
        steps.append((local_name(self.root), 0))
        return tuple(reversed(steps))

    def replace_text(self, element: ET.Element, value: str) -> None:
        """Set the trimmed text of a leaf element, keeping surrounding whitespace."""
        element.text = value
        span = self.source.inner.get(self.path_of(element))
        if span is None:
            self.restructured = True
            return

        start, end = span
        inner = self.source.data[start:end]
        start += len(inner) - len(inner.lstrip())
        end -= len(inner) - len(inner.rstrip())
        self.patches.append((start, end, escape(value).encode("utf-8")))

    def serialize(self) -> str:
        if self.restructured:
            return self._serialize_tree()

        data = self.source.data
        for start, end, replacement in sorted(self.patches, reverse=True):
            data = data[:start] + replacement + data[end:]
        return data.decode("utf-8")

    def _serialize_tree(self) -> str:
        if self.namespace:
            ET.register_namespace("", self.namespace)
        ET.register_namespace("xsi", XSI_NAMESPACE)

        body = ET.tostring(self.root, encoding="unicode", short_empty_elements=False)
        if self.newline != "\n":
            body = body.replace("\n", self.newline)

        start, end = self.source.root_span
        prolog = self.source.data[:start].decode("utf-8")
        epilog = self.source.data[end:].decode("utf-8")
        return prolog + body + epilog

    def write(self) -> bool:
        """Write the document back; returns False when nothing changed."""
        text = self.serialize()
        if text == self.original_text:
            return False
        with open(self.path, "w", encoding="utf-8", newline="") as f:
            f.write(_BOM + text if self.bom else text)
        return True


def load_pom(
    file_path: str, error_callback: Optional[ErrorCallback] = None
) -> PomDocument:
    """
    Load a pom.xml keeping comments, namespace and the raw source.

    Args:
        file_path: Path to the pom.xml file
        error_callback: Optional callback for handling parsing errors

    Raises:
        ManifestError: If the file cannot be read or is not a POM
    """
    if error_callback:
        get_error_handler().register_callback(error_callback, ErrorCategory.PARSING)

    path = _validate_file_path(file_path)
    content = _safe_read_file(path)
    bom = content.startswith(_BOM)
    if bom:
        content = content[len(_BOM):]

    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
    try:
        root = ET.fromstring(content, parser=parser)
    except ET.ParseError as e:
        log_parsing_error(
            f"Invalid XML format in {path.name}: {e}",
            "parsers",
            "load_pom",
            file_path=str(path),
            exception=e,
        )
        raise ManifestError(f"Invalid XML format: {e}")

    if local_name(root) != "project":
        log_parsing_error(
            f"Root element of {path.name} is <{local_name(root)}>, not <project>",
            "parsers",
            "load_pom",
            file_path=str(path),
        )
        raise ManifestError(
            f"Not a POM file: root element is <{local_name(root)}>, expected <project>"
        )

    namespace = root.tag[1:].split("}")[0] if root.tag.startswith("{") else None

    return PomDocument(
        path=path,
        root=root,
        namespace=namespace,
        original_text=content,
        source=SourceIndex(content.encode("utf-8")),
        bom=bom,
        newline="\r\n" if "\r\n" in content else "\n",
    )


def declared_dependencies(document: PomDocument) -> List[ET.Element]:
    """The ``<dependency>`` elements directly under ``project/dependencies``."""
    section = document.child(document.root, "dependencies")
    if section is None:
        return []
    return list(document.children(section, "dependency"))


def parse_pom_xml(
    file_path: str, error_callback: Optional[ErrorCallback] = None
) -> List[Dict[str, Optional[str]]]:
    """
    Parses a Maven pom.xml file and returns its declared dependencies.

    Args:
        file_path: Path to the pom.xml file
        error_callback: Optional callback for handling parsing errors

    Returns:
        List[Dict[str, Optional[str]]]: One dictionary per dependency

    Raises:
        ManifestError: If file cannot be read or contains invalid XML
    """
    document = load_pom(file_path, error_callback)

    dependencies = []
    for element in declared_dependencies(document):
        artifact_id = document.child_text(element, "artifactId")
        if not artifact_id:
            continue
        dependencies.append(
            {
                "group_id": document.child_text(element, "groupId"),
                "artifact_id": artifact_id,
                "version": document.child_text(element, "version"),
                "type": document.child_text(element, "type") or DEFAULT_TYPE,
                "classifier": document.child_text(element, "classifier"),
                "scope": document.child_text(element, "scope"),
                "source": str(document.path),
            }
        )

    return dependencies
