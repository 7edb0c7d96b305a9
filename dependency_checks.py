"""
Dependency and conflict checks for mod state transitions.

Every check is a pure function over the catalog state and returns
``(ok, reason)``; the first violated rule wins. Dependencies are plain
named-set membership: a missing transitive dependency is only caught when the
intermediate mod itself gets enabled.

Public API
----------
check_install(mod)              -> (ok, reason)
check_uninstall(mod)            -> (ok, reason)
check_enable(catalog, name)     -> (ok, reason)
check_disable(catalog, name)    -> (ok, reason)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mod_catalog import ModCatalogAdapter, ModDescriptor

OK = (True, "")


def check_install(mod: ModDescriptor) -> tuple[bool, str]:
    if mod.is_submod:
        return False, "Can not install submod"
    if mod.is_installed:
        return False, "Mod is already installed"
    if not mod.is_available:
        return False, "Mod is not available"
    return OK


def check_uninstall(mod: ModDescriptor) -> tuple[bool, str]:
    if mod.is_submod:
        return False, "Can not uninstall submod"
    if not mod.is_installed:
        return False, "Mod is not installed"
    return OK


def check_enable(catalog: ModCatalogAdapter, name: str) -> tuple[bool, str]:
    mod = catalog.get_mod(name)

    if mod.is_enabled:
        return False, "Mod is already enabled"
    if not mod.is_installed:
        return False, "Mod must be installed first"
    if not mod.is_compatible:
        return (
            False,
            "Mod is not compatible, please update the application "
            "and check out the latest mod revisions",
        )

    for dep in mod.dependencies:
        if not catalog.has_mod(dep):
            return False, f"Required mod {dep} is missing"
        if not catalog.get_mod(dep).is_enabled:
            return False, f"Required mod {dep} is not enabled"

    # reverse conflict: an enabled mod lists this one as a conflict
    for other_name in catalog.get_mod_list():
        if other_name == mod.name:
            continue
        other = catalog.get_mod(other_name)
        if other.is_enabled and mod.name in other.conflicts:
            return False, f"This mod conflicts with {other_name}"

    for conflict in mod.conflicts:
        if catalog.has_mod(conflict) and catalog.get_mod(conflict).is_enabled:
            return False, f"This mod conflicts with {conflict}"

    return OK


def check_disable(catalog: ModCatalogAdapter, name: str) -> tuple[bool, str]:
    mod = catalog.get_mod(name)

    if mod.is_disabled:
        return False, "Mod is already disabled"
    if not mod.is_installed:
        return False, "Mod must be installed first"

    for other_name in catalog.get_mod_list():
        if other_name == mod.name:
            continue
        other = catalog.get_mod(other_name)
        if other.is_enabled and mod.name in other.dependencies:
            return False, f"This mod is needed to run {other_name}"

    return OK
