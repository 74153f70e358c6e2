"""Render Guix package definitions as Scheme source."""

from __future__ import annotations

import re
import textwrap
from typing import Callable, Dict, Iterable, List, Optional

from constants import Constants
from versioning.models import ResolvedNode

from .package import GuixPackage, kebab_case, package_from_node

# SPDX identifiers with a direct (guix licenses) counterpart.
_LICENSES = {
    "MIT": "license:expat",
    "Apache-2.0": "license:asl2.0",
    "BSD-2-Clause": "license:bsd-2",
    "BSD-3-Clause": "license:bsd-3",
    "ISC": "license:isc",
    "MPL-2.0": "license:mpl2.0",
    "Zlib": "license:zlib",
    "Unlicense": "license:unlicense",
    "CC0-1.0": "license:cc0",
    "0BSD": "license:zero-clause-bsd",
    "BSL-1.0": "license:boost1.0",
    "LGPL-2.1": "license:lgpl2.1",
    "LGPL-3.0": "license:lgpl3",
    "GPL-2.0": "license:gpl2",
    "GPL-3.0": "license:gpl3",
}

_LICENSE_SPLIT_RE = re.compile(r'\s+OR\s+|\s+AND\s+|/|[()]')


def scheme_string(value: Optional[str]) -> str:
    """Quote ``value`` as a Scheme string literal."""
    if value is None:
        return '""'
    escaped = value.replace('\\', '\\\\').replace('"', '\\"')
    return f'"{escaped}"'


def license_expression(spdx: Optional[str]) -> str:
    """Translate an SPDX expression into a (guix licenses) reference.

    Unknown identifiers are dropped; nothing recognizable gives ``#f``.
    """
    if not spdx:
        return "#f"
    found: List[str] = []
    for part in _LICENSE_SPLIT_RE.split(spdx):
        ident = part.strip()
        if not ident:
            continue
        for suffix in ("-only", "-or-later", "+"):
            if ident.endswith(suffix):
                ident = ident[: -len(suffix)]
        symbol = _LICENSES.get(ident)
        if symbol and symbol not in found:
            found.append(symbol)
    if not found:
        return "#f"
    if len(found) == 1:
        return found[0]
    return "(list " + " ".join(found) + ")"


def _source_uri(pkg: GuixPackage) -> str:
    default = Constants.DOWNLOAD_URL_TEMPLATE.format(name=pkg.crate_name, version=pkg.version)
    if pkg.source == default:
        return f"(crate-uri {scheme_string(pkg.crate_name)} version)"
    return scheme_string(pkg.source)


def _arguments(pkg: GuixPackage) -> str:
    if not pkg.cargo_inputs:
        return ""
    lines = [f"({scheme_string(label)} ,{variable})" for label, variable in pkg.cargo_inputs]
    body = "\n".join(" " * 8 + line for line in lines).lstrip()
    return (
        "    (arguments\n"
        "     `(#:cargo-inputs\n"
        f"       ({body})))\n"
    )


def render_package(pkg: GuixPackage) -> str:
    """Render one ``define-public`` form."""
    text = textwrap.dedent(f"""\
        (define-public {pkg.variable}
          (package
            (name {scheme_string(pkg.name)})
            (version {scheme_string(pkg.version)})
            (source
             (origin
               (method url-fetch)
               (uri {_source_uri(pkg)})
               (file-name (string-append name "-" version ".tar.gz"))
               (sha256
                (base32 {scheme_string(pkg.hash)}))))
            (build-system {pkg.build_system})
        """)
    text += _arguments(pkg)
    text += textwrap.dedent(f"""\
            (home-page {scheme_string(pkg.home_page)})
            (synopsis {scheme_string(pkg.synopsis)})
            (description {scheme_string(pkg.description)})
            (license {license_expression(pkg.license)})))
        """)
    return text


def render_module(name: str, packages: Iterable[GuixPackage]) -> str:
    """Render a Guix module defining every package, in the given order."""
    header = textwrap.dedent(f"""\
        (define-module (carguix {kebab_case(name)})
          #:use-module (guix packages)
          #:use-module (guix download)
          #:use-module (guix build-system cargo)
          #:use-module ((guix licenses) #:prefix license:))
        """)
    return "\n".join([header] + [render_package(pkg) for pkg in packages])


def render_graph(
    root_name: str,
    graph: Iterable[ResolvedNode],
    hash_for: Callable[[ResolvedNode], str],
    metadata_for: Optional[Callable[[ResolvedNode], Dict[str, Optional[str]]]] = None,
) -> str:
    """Render every node of a resolution graph, in graph order.

    All hashes and metadata are gathered before any text is produced, so a
    failure leaves no partial output.
    """
    packages = []
    for node in graph:
        metadata = metadata_for(node) if metadata_for is not None else None
        packages.append(package_from_node(node, hash_for(node), metadata))
    return render_module(root_name, packages)
