"""Import literal parsing and remapping."""

from .package_ref import PackageReference, parse_package_reference
from .parser import ImportReference, extract_imports, has_import_grammar, is_relative_import
from .remapping import RemappingRule, apply_remappings, load_remappings, parse_remappings

__all__ = [
    "ImportReference",
    "PackageReference",
    "RemappingRule",
    "apply_remappings",
    "extract_imports",
    "has_import_grammar",
    "is_relative_import",
    "load_remappings",
    "parse_package_reference",
    "parse_remappings",
]
