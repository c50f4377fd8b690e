"""Route scanner: builds the manifest of routable paths a clinic app exposes.

Two sources are supported:

* a file-system route tree in the Next.js layout, where every ``page.*`` or
  ``route.*`` file is an entrypoint, ``[param]`` directories are path
  parameters (``:param``) and ``(group)`` directories add no segment;
* the routes a FastAPI application declares, which carry their methods
  explicitly and need no source parsing.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from clinicflow.core.config import settings
from clinicflow.models.permission import CATEGORY_DESCRIPTIONS, HTTP_METHODS, PermissionCategory

logger = logging.getLogger(__name__)

PAGE_FILES = {"page.tsx", "page.jsx", "page.ts", "page.js"}
ROUTE_FILES = {"route.ts", "route.js"}
SKIPPED_DIRS = {"node_modules", "components"}

# Sub-sections of /dashboard, first match wins
DASHBOARD_SECTIONS = [
    PermissionCategory.patients.value,
    PermissionCategory.appointments.value,
    PermissionCategory.billing.value,
    PermissionCategory.inventory.value,
    PermissionCategory.prescriptions.value,
    PermissionCategory.ehr.value,
    PermissionCategory.email.value,
    PermissionCategory.settings.value,
    PermissionCategory.profile.value,
    PermissionCategory.reports.value,
]

_HANDLER_RE = re.compile(
    r"export\s+(?:async\s+function|function|const|let)\s+(GET|POST|PUT|DELETE|PATCH)\b"
)
_TEMPLATE_PARAM_RE = re.compile(r"\{([^}:]+)(?::[^}]*)?\}")


@dataclass
class RouteInfo:
    path: str
    methods: List[str]
    file_path: str
    category: str


@dataclass
class RouteCategory:
    name: str
    description: str
    routes: List[RouteInfo] = field(default_factory=list)


def _segment_for(dirname: str) -> Optional[str]:
    """Logical path segment for a directory name; None for route groups."""
    if dirname.startswith("(") and dirname.endswith(")"):
        return None
    if dirname.startswith("[") and dirname.endswith("]"):
        return f":{dirname[1:-1]}"
    return dirname


def get_route_category(route_path: str) -> str:
    """Classify a logical route path into a permission category."""
    segments = [s for s in route_path.split("/") if s]
    if not segments:
        return PermissionCategory.dashboard.value

    first = segments[0]
    if first == PermissionCategory.admin.value:
        return PermissionCategory.admin.value
    if first == PermissionCategory.auth.value:
        return PermissionCategory.auth.value
    if first == PermissionCategory.dashboard.value:
        for section in DASHBOARD_SECTIONS:
            if section in segments:
                return section
        return PermissionCategory.dashboard.value
    if first == PermissionCategory.api.value:
        return PermissionCategory.api.value
    return PermissionCategory.dashboard.value


def get_route_methods(file_path: str) -> List[str]:
    """Find the HTTP verbs an entrypoint file exports handlers for."""
    try:
        with open(file_path, encoding="utf-8") as fh:
            content = fh.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Error reading route file %s: %s", file_path, e)
        return ["GET"]

    found = set(_HANDLER_RE.findall(content))
    methods = [m for m in HTTP_METHODS if m in found]

    # Page navigation is always a GET
    if not methods and os.path.basename(file_path) in PAGE_FILES:
        methods.append("GET")
    return methods


def scan_routes(base_dir: Optional[str] = None) -> List[RouteInfo]:
    """Walk a route tree and return one RouteInfo per entrypoint file.

    Unreadable directories are logged and skipped; the walk never aborts.
    """
    base_dir = base_dir or settings.ROUTE_ROOT
    routes: List[RouteInfo] = []

    def scan_directory(directory: str, current_path: str) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.warning("Error scanning directory %s: %s", directory, e)
            return

        for entry in entries:
            try:
                is_dir = entry.is_dir()
            except OSError as e:
                logger.warning("Error reading %s: %s", entry.path, e)
                continue

            if is_dir:
                if entry.name.startswith(".") or entry.name in SKIPPED_DIRS:
                    continue
                segment = _segment_for(entry.name)
                new_path = current_path if segment is None else f"{current_path}/{segment}"
                scan_directory(entry.path, new_path)
            elif entry.name in PAGE_FILES or entry.name in ROUTE_FILES:
                route_path = current_path or "/"
                routes.append(RouteInfo(
                    path=route_path,
                    methods=get_route_methods(entry.path),
                    file_path=entry.path,
                    category=get_route_category(route_path),
                ))

    scan_directory(base_dir, "")
    logger.debug("Scanned %d routes under %s", len(routes), base_dir)
    return routes


def collect_app_routes(app, include_prefixes: Optional[Iterable[str]] = None) -> List[RouteInfo]:
    """Build RouteInfo entries from the operations a FastAPI app declares.

    Reads the generated OpenAPI paths, which already carry the full prefix of
    every included router. Operations hidden from the schema are skipped.
    """
    prefixes = tuple(include_prefixes) if include_prefixes else None
    routes: List[RouteInfo] = []
    for template, operations in app.openapi().get("paths", {}).items():
        if prefixes and not template.startswith(prefixes):
            continue
        declared = {verb.upper(): op for verb, op in operations.items() if isinstance(op, dict)}
        methods = [m for m in HTTP_METHODS if m in declared]
        if not methods:
            continue
        path = _TEMPLATE_PARAM_RE.sub(r":\1", template)
        routes.append(RouteInfo(
            path=path,
            methods=methods,
            file_path=declared[methods[0]].get("operationId", template),
            category=get_route_category(path),
        ))
    return routes


def group_routes_by_category(routes: Iterable[RouteInfo]) -> List[RouteCategory]:
    """Group routes by category, keeping the order categories first appear in."""
    categories: dict = {}
    for route in routes:
        if route.category not in categories:
            categories[route.category] = RouteCategory(
                name=route.category,
                description=CATEGORY_DESCRIPTIONS.get(route.category, "Other routes"),
            )
        categories[route.category].routes.append(route)
    return list(categories.values())


def generate_permission_name(route: RouteInfo) -> str:
    """Readable permission name, e.g. ``Dashboard Patients id (GET)``."""
    segments = [s for s in route.path.split("/") if s]
    name = " ".join(
        s[1:] if s.startswith(":") else s[:1].upper() + s[1:]
        for s in segments
    )
    if route.methods:
        name += f" ({', '.join(route.methods)})"
    return name.strip()


def generate_permission_description(route: RouteInfo) -> str:
    description = f"Access to {route.path}"
    if route.methods:
        description += f" with {', '.join(route.methods)} methods"
    return description
