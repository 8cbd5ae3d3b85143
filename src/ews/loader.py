"""Locate and load the vendor EWS client library (exchangelib).

Installed distribution metadata plays the role of the system registry: every
registered copy of the library is enumerated, the newest version wins, and
the package is loaded from the location that distribution records.

Resolution happens once per process. The result is cached in this module and
reused by every later send; ``reset_vendor_library()`` drops the cache.
"""

import importlib
import importlib.util
import logging
import re
import sys
from dataclasses import dataclass
from importlib import metadata
from pathlib import Path
from types import ModuleType

from src.ews.errors import DependencyMissingError

logger = logging.getLogger(__name__)

VENDOR_DISTRIBUTION = "exchangelib"
VENDOR_PACKAGE = "exchangelib"
DOWNLOAD_REFERENCE = "https://pypi.org/project/exchangelib/"


@dataclass(frozen=True)
class VendorLibrary:
    """The resolved library: which version, where it lives, the loaded module."""

    version: str
    location: Path
    module: ModuleType


_resolved: VendorLibrary | None = None


# Pre-release phases rank below the final release; post-releases above it
_PHASE_RANK = {
    "dev": 0,
    "a": 1, "alpha": 1,
    "b": 2, "beta": 2,
    "c": 3, "rc": 3, "pre": 3, "preview": 3,
}
_FINAL_RANK = 4
_POST_RANK = 5


def version_key(version: str) -> tuple[tuple[int, ...], int, int]:
    """Sort key for a version string: numeric release, then phase, then phase number.

    Phases order as dev < a < b < rc < final < post, so
    ``"6.0.dev1" < "6.0a1" < "6.0b1" < "6.0rc1" < "6.0" < "6.0.post1"``.
    ``"5.4.3"`` → ``((5, 4, 3), 4, 0)``; ``"6.0rc1"`` → ``((6,), 3, 1)``.
    """
    match = re.match(r"\s*v?(\d+(?:\.\d+)*)(.*)$", version)
    if not match:
        return (), -1, 0
    release = tuple(int(part) for part in match.group(1).split("."))
    # Trailing zeros don't change the version: 5.4 == 5.4.0
    while len(release) > 1 and release[-1] == 0:
        release = release[:-1]
    suffix = match.group(2).strip().lower()
    phase = re.match(r"[.\-_]?(dev|alpha|a|beta|b|preview|pre|rc|c|post)[.\-_]?(\d*)", suffix)
    if phase is None:
        return release, _FINAL_RANK, 0  # no suffix, or a local "+build" label
    name, number = phase.group(1), int(phase.group(2) or 0)
    rank = _POST_RANK if name == "post" else _PHASE_RANK[name]
    return release, rank, number


def find_installations(distribution: str = VENDOR_DISTRIBUTION) -> list[metadata.Distribution]:
    """Return every installed distribution registered under ``distribution``."""
    wanted = _normalize(distribution)
    return [
        dist
        for dist in metadata.distributions()
        if _normalize(dist.metadata["Name"] or "") == wanted
    ]


def select_newest(installations: list[metadata.Distribution]) -> metadata.Distribution:
    """Pick the distribution with the greatest version."""
    return max(installations, key=lambda dist: version_key(dist.version))


def resolve_vendor_library(
    distribution: str = VENDOR_DISTRIBUTION,
    package: str = VENDOR_PACKAGE,
) -> VendorLibrary:
    """Find the newest installed copy of the library and load it.

    Raises DependencyMissingError when no copy is registered, or when the
    registered copy has no importable package on disk.
    """
    installations = find_installations(distribution)
    if not installations:
        raise DependencyMissingError(
            f"EWS client library {distribution!r} is not installed", DOWNLOAD_REFERENCE
        )
    if len(installations) > 1:
        logger.debug(
            "Found %d installations of %s: %s",
            len(installations),
            distribution,
            ", ".join(dist.version for dist in installations),
        )

    newest = select_newest(installations)
    package_init = Path(str(newest.locate_file(f"{package}/__init__.py")))
    if not package_init.is_file():
        raise DependencyMissingError(
            f"{distribution} {newest.version} is registered but {package_init} is missing",
            DOWNLOAD_REFERENCE,
        )

    module = _load_package(package, package_init)
    version, location = newest.version, package_init.parent
    loaded_file = getattr(module, "__file__", None)
    if loaded_file and Path(loaded_file).resolve() != package_init.resolve():
        # An earlier import won; report the copy actually in use
        location = Path(loaded_file).parent
        version = _installed_version(installations, package, Path(loaded_file)) or getattr(
            module, "__version__", "unknown"
        )
    logger.info("Loaded %s %s from %s", distribution, version, location)
    return VendorLibrary(version=version, location=location, module=module)


def get_vendor_library() -> VendorLibrary:
    """Return the process-wide resolved library, resolving it on first use."""
    global _resolved
    if _resolved is None:
        _resolved = resolve_vendor_library()
    return _resolved


def reset_vendor_library() -> None:
    """Forget the cached resolution so the next call re-discovers the library."""
    global _resolved
    _resolved = None


# ── Internal helpers ───────────────────────────────────────────────────────────


def _normalize(name: str) -> str:
    return re.sub(r"[-_.]+", "-", name).lower()


def _installed_version(
    installations: list[metadata.Distribution], package: str, init_file: Path
) -> str | None:
    """Version of the installation whose package lives at ``init_file``, if any."""
    target = init_file.resolve()
    for dist in installations:
        if Path(str(dist.locate_file(f"{package}/__init__.py"))).resolve() == target:
            return dist.version
    return None


def _load_package(package: str, package_init: Path) -> ModuleType:
    """Import ``package`` from ``package_init``, reusing an already-loaded copy."""
    existing = sys.modules.get(package)
    if existing is not None:
        existing_file = getattr(existing, "__file__", None)
        if existing_file and Path(existing_file).resolve() != package_init.resolve():
            logger.warning(
                "%s already imported from %s; not reloading from %s",
                package,
                existing_file,
                package_init,
            )
        return existing

    # Regular import when sys.path already resolves to the selected copy
    found = importlib.util.find_spec(package)
    if found is not None and found.origin and Path(found.origin).resolve() == package_init.resolve():
        return importlib.import_module(package)

    spec = importlib.util.spec_from_file_location(
        package, package_init, submodule_search_locations=[str(package_init.parent)]
    )
    if spec is None or spec.loader is None:
        raise DependencyMissingError(f"Cannot load {package} from {package_init}", DOWNLOAD_REFERENCE)
    module = importlib.util.module_from_spec(spec)
    sys.modules[package] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        del sys.modules[package]
        raise
    return module
