# tests/arch/test_layering.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Layering guardrail using the grimp import graph.

Builds the import graph of ``settlement_recon`` and enforces:

    domain         → may depend only on domain
    application    → may depend on {domain, application}
    adapters       → may depend on {domain, application, adapters, infrastructure}
    infrastructure → may depend on {domain, application, adapters, infrastructure}

``config``, ``dependencies`` and ``tasks`` are composition roots and sit
outside the matrix. Domain and application must not reach them either.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final

import grimp
from grimp import ImportGraph

ROOT_PACKAGE: Final[str] = "settlement_recon"

LAYERS: Final[frozenset[str]] = frozenset(
    {"domain", "application", "adapters", "infrastructure"}
)
COMPOSITION_ROOTS: Final[frozenset[str]] = frozenset({"config", "dependencies", "tasks"})

ALLOWED_DEPENDENCIES: Mapping[str, set[str]] = {
    "domain": {"domain"},
    "application": {"domain", "application"},
    "adapters": {"domain", "application", "adapters", "infrastructure"},
    "infrastructure": {"domain", "application", "adapters", "infrastructure"},
}

# Inner layers may not import the wiring packages.
INNER_LAYERS: Final[frozenset[str]] = frozenset({"domain", "application"})


def _build_graph(*, include_external_packages: bool = False) -> ImportGraph:
    return grimp.build_graph(ROOT_PACKAGE, include_external_packages=include_external_packages)


def _top_package(module_name: str) -> str | None:
    """Return the first component after the root package, if any."""
    if not module_name.startswith(f"{ROOT_PACKAGE}."):
        return None
    return module_name[len(ROOT_PACKAGE) + 1 :].split(".", 1)[0]


def _find_layering_violations(graph: ImportGraph) -> list[str]:
    violations: set[str] = set()

    for importer in sorted(graph.modules):
        importer_layer = _top_package(importer)
        if importer_layer not in LAYERS:
            continue
        allowed = ALLOWED_DEPENDENCIES[importer_layer]

        for imported in graph.find_modules_directly_imported_by(importer):
            imported_top = _top_package(imported)
            if imported_top is None:
                continue  # stdlib / third-party

            if imported_top in COMPOSITION_ROOTS:
                if importer_layer in INNER_LAYERS:
                    violations.add(
                        f"{importer} ({importer_layer}) -> {imported} (composition root)"
                    )
                continue

            if imported_top in LAYERS and imported_top not in allowed:
                violations.add(
                    f"{importer} ({importer_layer}) -> {imported} ({imported_top}) "
                    "is not allowed by ALLOWED_DEPENDENCIES"
                )

    return sorted(violations)


def test_layering_respects_clean_architecture() -> None:
    graph = _build_graph()
    violations = _find_layering_violations(graph)

    if violations:
        raise AssertionError("Layering violations detected:\n" + "\n".join(violations))


def test_domain_has_no_framework_imports() -> None:
    graph = _build_graph(include_external_packages=True)
    offenders = sorted(
        f"{m} -> {i}"
        for m in graph.modules
        if _top_package(m) == "domain"
        for i in graph.find_modules_directly_imported_by(m)
        if i.split(".", 1)[0] in {"sqlalchemy", "httpx", "pydantic", "typer", "prometheus_client"}
    )
    assert offenders == []
