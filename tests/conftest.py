"""Shared fixtures: a tiny Java class file assembler and a sample classpath."""

import struct
import zipfile
from pathlib import Path

import pytest

ACC_PUBLIC = 0x0001
ACC_PRIVATE = 0x0002
ACC_SUPER = 0x0020
ACC_INTERFACE = 0x0200
ACC_ABSTRACT = 0x0400

OBJECT = "java/lang/Object"


def build_class(
    name: str,
    superclass: str | None = OBJECT,
    interfaces: tuple[str, ...] = (),
    access: int = ACC_PUBLIC | ACC_SUPER,
    constructor_access: int | None = ACC_PUBLIC,
    constructor_descriptor: str = "()V",
) -> bytes:
    """Assemble a minimal but well formed class file.

    Names use the internal form (``org/example/Foo``). The constant pool
    includes a Long constant so that two-slot entries are exercised.
    """
    slots: list[bytes | None] = []
    utf8_index: dict[str, int] = {}

    def utf8(value: str) -> int:
        if value not in utf8_index:
            encoded = value.encode("utf-8")
            slots.append(b"\x01" + struct.pack(">H", len(encoded)) + encoded)
            utf8_index[value] = len(slots)
        return utf8_index[value]

    def class_ref(value: str) -> int:
        name_index = utf8(value)
        slots.append(b"\x07" + struct.pack(">H", name_index))
        return len(slots)

    this_index = class_ref(name)
    super_index = class_ref(superclass) if superclass else 0
    interface_indexes = [class_ref(i) for i in interfaces]
    slots.append(b"\x05" + struct.pack(">q", 42))
    slots.append(None)  # second slot of the Long
    field_name = utf8("value")
    field_desc = utf8("I")
    code = utf8("Code")
    init = utf8("<init>")
    init_desc = utf8(constructor_descriptor)
    run = utf8("run")
    run_desc = utf8("()V")

    out = bytearray()
    out += struct.pack(">IHH", 0xCAFEBABE, 0, 55)
    out += struct.pack(">H", len(slots) + 1)
    for slot in slots:
        if slot is not None:
            out += slot
    out += struct.pack(">HHH", access, this_index, super_index)
    out += struct.pack(">H", len(interface_indexes))
    for index in interface_indexes:
        out += struct.pack(">H", index)

    out += struct.pack(">H", 1)
    out += struct.pack(">HHHH", ACC_PRIVATE, field_name, field_desc, 0)

    methods = []
    if constructor_access is not None:
        methods.append((constructor_access, init, init_desc))
    methods.append((ACC_PUBLIC, run, run_desc))
    out += struct.pack(">H", len(methods))
    for method_access, name_index, desc_index in methods:
        out += struct.pack(">HHHH", method_access, name_index, desc_index, 1)
        body = b"\x00\x01\x00\x01\x00\x00\x00\x01\xb1\x00\x00\x00\x00"
        out += struct.pack(">HI", code, len(body)) + body

    out += struct.pack(">H", 0)
    return bytes(out)


def write_class(root: Path, name: str, data: bytes) -> Path:
    path = root / f"{name}.class"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


EXTENSION = "org/parosproxy/paros/extension/Extension"
EXTENSION_ADAPTOR = "org/parosproxy/paros/extension/ExtensionAdaptor"
PLUGIN = "org/parosproxy/paros/core/scanner/Plugin"
ABSTRACT_PLUGIN = "org/parosproxy/paros/core/scanner/AbstractPlugin"
PASSIVE_SCANNER = "org/zaproxy/zap/extension/pscan/PluginPassiveScanner"


@pytest.fixture
def build_class_file():
    return build_class


@pytest.fixture
def platform_jar(tmp_path) -> Path:
    """A jar with the platform's capability types and one concrete extension."""
    jar = tmp_path / "zap.jar"
    with zipfile.ZipFile(jar, "w") as zf:
        zf.writestr(
            f"{EXTENSION}.class",
            build_class(EXTENSION, access=ACC_PUBLIC | ACC_INTERFACE | ACC_ABSTRACT,
                        constructor_access=None),
        )
        zf.writestr(
            f"{EXTENSION_ADAPTOR}.class",
            build_class(EXTENSION_ADAPTOR, interfaces=(EXTENSION,),
                        access=ACC_PUBLIC | ACC_SUPER | ACC_ABSTRACT),
        )
        zf.writestr(
            f"{PLUGIN}.class",
            build_class(PLUGIN, access=ACC_PUBLIC | ACC_INTERFACE | ACC_ABSTRACT,
                        constructor_access=None),
        )
        zf.writestr(
            f"{ABSTRACT_PLUGIN}.class",
            build_class(ABSTRACT_PLUGIN, interfaces=(PLUGIN,),
                        access=ACC_PUBLIC | ACC_SUPER | ACC_ABSTRACT),
        )
        zf.writestr(
            f"{PASSIVE_SCANNER}.class",
            build_class(PASSIVE_SCANNER, access=ACC_PUBLIC | ACC_SUPER | ACC_ABSTRACT),
        )
        zf.writestr(
            "org/zaproxy/zap/extension/ExtensionCore.class",
            build_class("org/zaproxy/zap/extension/ExtensionCore", EXTENSION_ADAPTOR),
        )
        zf.writestr("META-INF/MANIFEST.MF", "Manifest-Version: 1.0\n")
    return jar


@pytest.fixture
def addon_classes(tmp_path) -> Path:
    """Compiled classes of a sample add-on."""
    root = tmp_path / "classes"
    write_class(root, "org/example/ExtensionExample",
                build_class("org/example/ExtensionExample", EXTENSION_ADAPTOR))
    write_class(root, "org/example/ExtensionOther",
                build_class("org/example/ExtensionOther", EXTENSION_ADAPTOR))
    write_class(root, "org/example/ExtensionHidden",
                build_class("org/example/ExtensionHidden", EXTENSION_ADAPTOR,
                            access=ACC_SUPER))
    write_class(root, "org/example/ExtensionWithArgs",
                build_class("org/example/ExtensionWithArgs", EXTENSION_ADAPTOR,
                            constructor_descriptor="(Ljava/lang/String;)V"))
    write_class(root, "org/example/ExtensionPrivateCtor",
                build_class("org/example/ExtensionPrivateCtor", EXTENSION_ADAPTOR,
                            constructor_access=ACC_PRIVATE))
    write_class(root, "org/example/AbstractExtension",
                build_class("org/example/AbstractExtension", EXTENSION_ADAPTOR,
                            access=ACC_PUBLIC | ACC_SUPER | ACC_ABSTRACT))
    write_class(root, "org/example/ActiveRule",
                build_class("org/example/ActiveRule", ABSTRACT_PLUGIN))
    write_class(root, "org/example/PassiveRule",
                build_class("org/example/PassiveRule", PASSIVE_SCANNER))
    write_class(root, "org/example/Helper", build_class("org/example/Helper"))
    write_class(root, "module-info", b"not a class file")
    return root
