"""
Downstream artifacts for generated source.

``source_file_path`` derives where the generated class lives in a source
tree; ``build_extension`` reports whether the host could package the source
into an ``.aix``.  Packaging itself is not implemented: the build only checks
for a Java compiler and the App Inventor libraries and says what is missing.
"""

import os
import shutil
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Sequence

from .config import GeneratorConfig
from .models import BlockGraph, NodeKind
from .sanitizer import IdentifierCase, sanitize_package, to_identifier


logger = logging.getLogger(__name__)

REQUIRED_LIBRARIES = ("android.jar", "appinventor.jar")
DEFAULT_SOURCE_NAME = "Extension.java"


@dataclass
class BuildResult:
    """Outcome of a build request, with the HTTP status the web layer returns."""
    success: bool
    status: int
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def source_file_path(graph: BlockGraph, config: Optional[GeneratorConfig] = None) -> str:
    """Relative path of the generated class, e.g. ``com/example/ext/Demo.java``."""
    config = config or GeneratorConfig()
    root = graph.find_root(NodeKind.AI2_EXTENSION)
    if root is None:
        return DEFAULT_SOURCE_NAME
    package = sanitize_package(root.get_field("PACKAGE"), config.default_package)
    class_name = to_identifier(root.text_field("CLASSNAME", config.default_class_name),
                               IdentifierCase.PASCAL)
    return "/".join(package.split(".") + [f"{class_name}.java"])


def build_extension(source: str, libraries: Optional[Sequence[str]] = None,
                    lib_dir: Optional[str] = None) -> BuildResult:
    """
    Check the build environment for *source*; never produces an archive.

    *libraries* names the extra jars a client wants bundled. They are only
    counted for logging; the jars actually checked come from *lib_dir*.
    """
    if not source or not source.strip():
        return BuildResult(False, 400, "No Java source to build.")

    libraries = list(libraries or [])
    if shutil.which("javac") is None:
        logger.info("Build requested but javac is not available")
        return BuildResult(
            False, 501,
            "Server-side build unavailable: Java compiler (javac) not found. "
            "Download the .java source and compile it locally with the App Inventor sources."
        )

    lib_dir = lib_dir or os.environ.get('EXTBUILDER_LIB_DIR', 'lib')
    missing = [name for name in REQUIRED_LIBRARIES
               if not os.path.isfile(os.path.join(lib_dir, name))]
    if missing:
        logger.info(f"Build requested but {', '.join(missing)} missing from {lib_dir}")
        return BuildResult(
            True, 200,
            f"Java compiler found, but {', '.join(missing)} missing from {lib_dir}. "
            "The Java source was generated; populate the library folder or download "
            "the .java source to produce an .aix."
        )

    logger.info(f"Build environment ready ({len(libraries)} extra libraries); packaging is not implemented")
    return BuildResult(False, 501, "Java compiler and libraries found, but packaging to .aix is not implemented.")
