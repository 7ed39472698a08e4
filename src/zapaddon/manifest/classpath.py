"""Static index of Java class files.

Class files are parsed just far enough to know each class's access flags,
super class, interfaces and constructors. Nothing is ever loaded or run, so
scanning an add-on's classpath is deterministic and side-effect free.
"""

import logging
import struct
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator

logger = logging.getLogger(__name__)

CLASS_MAGIC = 0xCAFEBABE

ACC_PUBLIC = 0x0001
ACC_INTERFACE = 0x0200
ACC_ABSTRACT = 0x0400
ACC_ANNOTATION = 0x2000

ARCHIVE_SUFFIXES = (".jar", ".zip", ".zap")

# Constant pool tags and the size of their payload in bytes (Utf8 is variable).
_CP_UTF8 = 1
_CP_CLASS = 7
_CP_LONG = 5
_CP_DOUBLE = 6
_CP_SIZES = {
    3: 4,  # Integer
    4: 4,  # Float
    5: 8,  # Long
    6: 8,  # Double
    7: 2,  # Class
    8: 2,  # String
    9: 4,  # Fieldref
    10: 4,  # Methodref
    11: 4,  # InterfaceMethodref
    12: 4,  # NameAndType
    15: 3,  # MethodHandle
    16: 2,  # MethodType
    17: 4,  # Dynamic
    18: 4,  # InvokeDynamic
    19: 2,  # Module
    20: 2,  # Package
}


class ClassFormatError(Exception):
    """Raised when bytes are not a well formed class file."""


@dataclass
class ClassInfo:
    """What the scanner needs to know about one class."""

    name: str
    access_flags: int
    superclass: str | None = None
    interfaces: list[str] = field(default_factory=list)
    has_public_no_arg_constructor: bool = False
    location: Path | None = None

    @property
    def is_public(self) -> bool:
        return bool(self.access_flags & ACC_PUBLIC)

    @property
    def is_abstract(self) -> bool:
        return bool(self.access_flags & ACC_ABSTRACT)

    @property
    def is_interface(self) -> bool:
        return bool(self.access_flags & ACC_INTERFACE)

    @property
    def is_annotation(self) -> bool:
        return bool(self.access_flags & ACC_ANNOTATION)

    @property
    def is_standard_class(self) -> bool:
        """Neither an interface nor an annotation."""
        return not self.is_interface and not self.is_annotation

    @property
    def is_instantiable(self) -> bool:
        """Public, concrete and constructible without arguments."""
        return (
            self.is_standard_class
            and self.is_public
            and not self.is_abstract
            and self.has_public_no_arg_constructor
        )

    def supertypes(self) -> list[str]:
        names = list(self.interfaces)
        if self.superclass:
            names.insert(0, self.superclass)
        return names


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def read(self, fmt: str):
        size = struct.calcsize(fmt)
        if self.pos + size > len(self.data):
            raise ClassFormatError("Truncated class file")
        values = struct.unpack_from(fmt, self.data, self.pos)
        self.pos += size
        return values

    def u1(self) -> int:
        return self.read(">B")[0]

    def u2(self) -> int:
        return self.read(">H")[0]

    def u4(self) -> int:
        return self.read(">I")[0]

    def skip(self, count: int) -> None:
        if self.pos + count > len(self.data):
            raise ClassFormatError("Truncated class file")
        self.pos += count

    def raw(self, count: int) -> bytes:
        start = self.pos
        self.skip(count)
        return self.data[start:self.pos]


def _binary_name(internal_name: str) -> str:
    return internal_name.replace("/", ".")


def parse_class(data: bytes, location: Path | None = None) -> ClassInfo:
    """Parse the header of a class file.

    Args:
        data: Raw class file bytes.
        location: Classpath element the class was read from.

    Returns:
        The parsed class information.

    Raises:
        ClassFormatError: If the bytes are not a valid class file.
    """
    reader = _Reader(data)
    if reader.u4() != CLASS_MAGIC:
        raise ClassFormatError("Bad magic number")
    reader.skip(4)  # minor and major version

    pool_count = reader.u2()
    utf8: dict[int, str] = {}
    classes: dict[int, int] = {}
    index = 1
    while index < pool_count:
        tag = reader.u1()
        if tag == _CP_UTF8:
            length = reader.u2()
            utf8[index] = reader.raw(length).decode("utf-8", errors="replace")
        elif tag == _CP_CLASS:
            classes[index] = reader.u2()
        elif tag in _CP_SIZES:
            reader.skip(_CP_SIZES[tag])
        else:
            raise ClassFormatError(f"Unknown constant pool tag {tag} at index {index}")
        # Long and Double take two slots.
        index += 2 if tag in (_CP_LONG, _CP_DOUBLE) else 1

    def class_name(cp_index: int) -> str | None:
        if cp_index == 0:
            return None
        try:
            return _binary_name(utf8[classes[cp_index]])
        except KeyError:
            raise ClassFormatError(f"Invalid class reference {cp_index}") from None

    access_flags = reader.u2()
    this_class = class_name(reader.u2())
    if this_class is None:
        raise ClassFormatError("Missing this_class")
    superclass = class_name(reader.u2())
    interfaces = [class_name(reader.u2()) for _ in range(reader.u2())]

    for _ in range(reader.u2()):  # fields
        reader.skip(6)
        _skip_attributes(reader)

    has_ctor = False
    for _ in range(reader.u2()):  # methods
        method_flags, name_index, descriptor_index = reader.read(">HHH")
        _skip_attributes(reader)
        if (
            utf8.get(name_index) == "<init>"
            and utf8.get(descriptor_index) == "()V"
            and method_flags & ACC_PUBLIC
        ):
            has_ctor = True

    return ClassInfo(
        name=this_class,
        access_flags=access_flags,
        superclass=superclass,
        interfaces=[i for i in interfaces if i],
        has_public_no_arg_constructor=has_ctor,
        location=location,
    )


def _skip_attributes(reader: _Reader) -> None:
    for _ in range(reader.u2()):
        reader.skip(2)
        reader.skip(reader.u4())


def _is_class_entry(name: str) -> bool:
    base = name.rsplit("/", 1)[-1]
    return (
        name.endswith(".class")
        and base not in ("module-info.class", "package-info.class")
        and not name.startswith("META-INF/")
    )


def iter_class_files(element: Path) -> Iterator[bytes]:
    """Yield the bytes of every class file in a classpath element.

    Args:
        element: A directory of class files or a jar/zip archive.
    """
    element = Path(element)
    if element.is_dir():
        for path in sorted(element.rglob("*.class")):
            rel = path.relative_to(element).as_posix()
            if path.is_file() and _is_class_entry(rel):
                yield path.read_bytes()
    elif element.is_file() and element.suffix.lower() in ARCHIVE_SUFFIXES:
        with zipfile.ZipFile(element) as archive:
            for name in sorted(archive.namelist()):
                if _is_class_entry(name):
                    yield archive.read(name)
    elif element.is_file() and element.suffix == ".class":
        yield element.read_bytes()
    else:
        logger.debug(f"Ignoring classpath element {element}")


class ClassIndex:
    """Inheritance graph over every class on a classpath."""

    def __init__(self, classes: Iterable[ClassInfo] = ()) -> None:
        self._classes: dict[str, ClassInfo] = {}
        self._ancestors: dict[str, frozenset[str]] = {}
        for info in classes:
            self.add(info)

    @classmethod
    def from_classpath(cls, elements: Iterable[Path]) -> "ClassIndex":
        """Index every class found on ``elements``.

        When a class is defined more than once, the first element wins.
        Class files that cannot be parsed, and elements that cannot be read
        at all, are skipped with a warning.
        """
        index = cls()
        for element in elements:
            count = 0
            try:
                for data in iter_class_files(element):
                    try:
                        info = parse_class(data, location=Path(element))
                    except ClassFormatError as e:
                        logger.warning(f"Skipping unreadable class file in {element}: {e}")
                        continue
                    if index.add(info):
                        count += 1
            except (zipfile.BadZipFile, OSError) as e:
                logger.warning(f"Skipping unreadable classpath element {element}: {e}")
                continue
            logger.debug(f"Indexed {count} classes from {element}")
        return index

    def add(self, info: ClassInfo) -> bool:
        """Add a class unless one with the same name is already indexed."""
        if info.name in self._classes:
            return False
        self._classes[info.name] = info
        self._ancestors.clear()
        return True

    def __contains__(self, name: str) -> bool:
        return name in self._classes

    def __len__(self) -> int:
        return len(self._classes)

    def get(self, name: str) -> ClassInfo | None:
        return self._classes.get(name)

    def ancestors(self, name: str) -> frozenset[str]:
        """All supertypes reachable from ``name``.

        ``name`` itself is only included when it sits on a cycle. Supertypes
        missing from the index end the walk along that branch.
        """
        cached = self._ancestors.get(name)
        if cached is not None:
            return cached

        found: set[str] = set()
        pending = list(self._direct_supertypes(name))
        while pending:
            current = pending.pop()
            if current in found:
                continue
            found.add(current)
            pending.extend(self._direct_supertypes(current))

        result = frozenset(found)
        self._ancestors[name] = result
        return result

    def _direct_supertypes(self, name: str) -> list[str]:
        info = self._classes.get(name)
        return info.supertypes() if info else []

    def is_assignable(self, name: str, base: str) -> bool:
        return name == base or base in self.ancestors(name)

    def assignable_to(self, base: str) -> list[ClassInfo]:
        """Classes that are, extend, or implement ``base``, sorted by name."""
        return sorted(
            (info for info in self._classes.values() if self.is_assignable(info.name, base)),
            key=lambda info: info.name,
        )
