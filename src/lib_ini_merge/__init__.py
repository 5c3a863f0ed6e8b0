"""Public package surface for ``lib_ini_merge``.

Re-exports the composition root helpers, the rule vocabulary, the error
taxonomy and the logging hooks so ``import lib_ini_merge`` is all a consumer
needs. Adapters stay importable from their own modules for callers that wire
custom resolvers or tokenizers.
"""

from __future__ import annotations

from .adapters.secrets.default import (
    EnvSecretResolver,
    KeyringSecretResolver,
    MappingSecretResolver,
    NullSecretResolver,
)
from .application.filter import KEEP, REMOVE, Keep, Remove, Replace, filter_rule_set
from .application.merge import MergeReport, MergeWarning
from .application.transforms import KdeShortcutTransform, UnsortedListTransform
from .core import (
    build_source_index,
    filter_ini,
    iter_merge_ini,
    load_filter_rules,
    load_rules,
    merge_ini,
    merge_ini_with_report,
    parse,
)
from .domain.document import OUTSIDE_SECTION, Document
from .domain.errors import (
    ExhaustionNotice,
    IniMergeError,
    ParseError,
    PatternError,
    RuleFileError,
    RuleFileNotFound,
    SecretBackendError,
    SecretLookupError,
    SecretNotFound,
    TransformError,
)
from .domain.rules import (
    COPY_FROM_SOURCE,
    DELETE,
    IGNORE,
    PRESERVE,
    CopyFromSource,
    Delete,
    Ignore,
    Preserve,
    Rule,
    RuleSet,
    RuleSetBuilder,
    Secret,
    SetValue,
    Transform,
    literal,
    pattern,
)
from .application.source_index import SourceIndex
from .observability import bind_trace_id, get_logger

__all__ = [
    "COPY_FROM_SOURCE",
    "CopyFromSource",
    "DELETE",
    "Delete",
    "Document",
    "EnvSecretResolver",
    "ExhaustionNotice",
    "IGNORE",
    "Ignore",
    "IniMergeError",
    "KEEP",
    "KdeShortcutTransform",
    "Keep",
    "KeyringSecretResolver",
    "MappingSecretResolver",
    "MergeReport",
    "MergeWarning",
    "NullSecretResolver",
    "OUTSIDE_SECTION",
    "PRESERVE",
    "ParseError",
    "PatternError",
    "Preserve",
    "REMOVE",
    "Remove",
    "Replace",
    "Rule",
    "RuleFileError",
    "RuleFileNotFound",
    "RuleSet",
    "RuleSetBuilder",
    "Secret",
    "SecretBackendError",
    "SecretLookupError",
    "SecretNotFound",
    "SetValue",
    "SourceIndex",
    "Transform",
    "TransformError",
    "UnsortedListTransform",
    "bind_trace_id",
    "build_source_index",
    "filter_ini",
    "filter_rule_set",
    "get_logger",
    "iter_merge_ini",
    "literal",
    "load_filter_rules",
    "load_rules",
    "merge_ini",
    "merge_ini_with_report",
    "parse",
    "pattern",
]
