"""
Type Compatibility Matcher

Maps declared SQL types from any dialect onto a small set of categories so
that join candidates are only proposed between columns that could hold the
same values.
"""
from __future__ import annotations

import re
from typing import Dict


TYPE_CATEGORIES: Dict[str, tuple] = {
    "uuid": ("uuid",),
    "integer": (
        "int", "int2", "int4", "int8", "integer", "smallint", "bigint", "tinyint",
        "mediumint", "serial", "smallserial", "bigserial",
    ),
    "string": (
        "text", "varchar", "char", "character", "character varying", "bpchar",
        "nvarchar", "nchar", "ntext", "string", "citext",
        "tinytext", "mediumtext", "longtext", "varchar2", "nvarchar2", "clob", "nclob",
    ),
    "numeric": (
        "numeric", "decimal", "float", "float4", "float8", "real",
        "double precision", "double", "money",
    ),
    "boolean": ("boolean", "bool", "bit"),
    "timestamp": (
        "timestamp", "timestamptz", "timestamp with time zone",
        "timestamp without time zone", "datetime", "datetime2", "date", "time", "timetz",
    ),
    "json": ("json", "jsonb"),
}

_CATEGORY_BY_TYPE = {
    type_name: category
    for category, type_names in TYPE_CATEGORIES.items()
    for type_name in type_names
}

_PARAMS_RE = re.compile(r"\([^)]*\)")


def normalize_data_type(data_type: str) -> str:
    """Lower-case, drop ``(...)`` parameters and array brackets, collapse spaces"""
    normalized = _PARAMS_RE.sub("", (data_type or "").lower())
    normalized = normalized.replace("[]", "")
    return " ".join(normalized.split())


def categorize_data_type(data_type: str) -> str:
    """
    Category of a declared type, or "" when unknown

    Examples:
        varchar(255)                -> string
        timestamp(6) with time zone -> timestamp
        int4[]                      -> integer
        longtext                    -> string
    """
    normalized = normalize_data_type(data_type)
    category = _CATEGORY_BY_TYPE.get(normalized, "")
    if not category and ("char" in normalized or "text" in normalized):
        # Dialect text types not listed above, e.g. national character varying
        return "string"
    return category


def are_types_compatible(source_type: str, target_type: str) -> bool:
    """True iff both types fall into the same known category"""
    source_category = categorize_data_type(source_type)
    if not source_category:
        return False
    return source_category == categorize_data_type(target_type)
