"""Span metadata keys read and written by the attribution engine."""

from typing import Final

# Canonical location string ("path:line" or library name)
SOURCE_LOCATION: Final = "source_location"

# Absolute file and line, rewritten to SOURCE_LOCATION at preprocess time
SOURCE_FILE: Final = "source_file"
SOURCE_LINE: Final = "source_line"

# (variant, type name, method name) triple; input only
SOURCE_LOCATION_HINT: Final = "source_location_hint"

# Frame of the instrumentation call site; input only
INSTRUMENT_LOCATION: Final = "sk_instrument_location"

# (file, line) pair embedded in a normalizer payload
PAYLOAD_SOURCE_LOCATION: Final = "sk_source_location"

# Nested metadata mapping inside instrumentation options
NESTED_META: Final = "meta"

# Keys collaborators may keep on a span
ALLOWED_META_KEYS: Final = (SOURCE_LOCATION, SOURCE_FILE, SOURCE_LINE)

# Prefix of wrappers installed by instrumentation ahead of the original method
BEFORE_INSTRUMENT_PREFIX: Final = "before_instrument_"

# Hard cap on inspected call-stack frames
MAX_CALLER_DEPTH: Final = 75

# Default capacity of each bounded cache
DEFAULT_CACHE_SIZE: Final = 1000
