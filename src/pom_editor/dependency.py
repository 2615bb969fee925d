import re
from dataclasses import dataclass
from typing import Optional

from .error_handling import InvalidDependencyAttribute, InvalidIdentifierFormat

DEFAULT_TYPE = "jar"

MAVEN_SCOPES = ("compile", "provided", "runtime", "test", "system", "import")

_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]+$")


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def is_valid_token(value: str) -> bool:
    """True for a type or classifier made of letters, digits, '.', '-' and '_'."""
    return bool(_TOKEN_PATTERN.fullmatch(value))


def _check_token(attribute: str, value: Optional[str]) -> Optional[str]:
    value = _blank_to_none(value)
    if value is not None and not is_valid_token(value):
        raise InvalidDependencyAttribute(
            attribute, value, "only letters, digits, '.', '-' and '_' are allowed"
        )
    return value


@dataclass(frozen=True)
class Dependency:
    """A Maven dependency declaration to add to a POM."""

    group_id: str
    artifact_id: str
    version: str
    type: str = DEFAULT_TYPE
    classifier: Optional[str] = None
    scope: Optional[str] = None

    @classmethod
    def of_gav(cls, gav: Optional[str]) -> "DependencyBuilder":
        """Start building a dependency from a ``group:artifact:version`` string."""
        return DependencyBuilder(gav)

    @property
    def gav(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"

    @property
    def coordinates(self) -> str:
        """Full Maven coordinate, ``group:artifact:type[:classifier]:version``."""
        parts = [self.group_id, self.artifact_id, self.type]
        if self.classifier:
            parts.append(self.classifier)
        parts.append(self.version)
        return ":".join(parts)

    def __str__(self) -> str:
        return self.gav


class DependencyBuilder:
    """
    Fluent builder for :class:`Dependency`.

    The identifier is parsed eagerly so a malformed string fails before any
    optional attribute is looked at. Setters accept ``None`` or blank strings
    to mean "use the default".
    """

    def __init__(self, gav: Optional[str], default_type: str = DEFAULT_TYPE):
        self._group_id, self._artifact_id, self._version = parse_gav(gav)
        self._default_type = _check_token("type", default_type) or DEFAULT_TYPE
        self._type: Optional[str] = None
        self._classifier: Optional[str] = None
        self._scope: Optional[str] = None

    def set_type(self, type: Optional[str]) -> "DependencyBuilder":
        self._type = _check_token("type", type)
        return self

    def set_classifier(self, classifier: Optional[str]) -> "DependencyBuilder":
        self._classifier = _check_token("classifier", classifier)
        return self

    def set_scope(self, scope: Optional[str]) -> "DependencyBuilder":
        scope = _blank_to_none(scope)
        if scope is not None and scope not in MAVEN_SCOPES:
            raise InvalidDependencyAttribute(
                "scope", scope, f"expected one of {', '.join(MAVEN_SCOPES)}"
            )
        self._scope = scope
        return self

    def build(self) -> Dependency:
        return Dependency(
            group_id=self._group_id,
            artifact_id=self._artifact_id,
            version=self._version,
            type=self._type or self._default_type,
            classifier=self._classifier,
            scope=self._scope,
        )


def parse_gav(gav: Optional[str]):
    """
    Split ``group:artifact:version`` into its three parts.

    Raises:
        InvalidIdentifierFormat: if there are not exactly three non-empty parts
    """
    if not isinstance(gav, str):
        raise InvalidIdentifierFormat(gav)

    segments = [segment.strip() for segment in gav.split(":")]
    if len(segments) != 3 or not all(segments):
        raise InvalidIdentifierFormat(gav)

    return segments[0], segments[1], segments[2]


def parse_dependency(
    gav: Optional[str],
    type: Optional[str] = None,
    classifier: Optional[str] = None,
    scope: Optional[str] = None,
    default_type: str = DEFAULT_TYPE,
) -> Dependency:
    """Parse an identifier and its optional attributes in one call."""
    return (
        DependencyBuilder(gav, default_type)
        .set_type(type)
        .set_classifier(classifier)
        .set_scope(scope)
        .build()
    )
