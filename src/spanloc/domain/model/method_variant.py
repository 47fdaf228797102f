"""Method lookup variants for the source locator."""

from __future__ import annotations

from enum import Enum

from spanloc.domain.exceptions import UnknownVariantError


class MethodVariant(Enum):
    """Which definition of a method in an override chain to report.

    - INSTANCE_METHOD: method as resolved on the type (any ancestor)
    - OWN_INSTANCE_METHOD: definition owned by the type itself
    - INSTANCE_METHOD_SUPER: root of the override chain
    - CLASS_METHOD: type-level (class/static) method
    """

    INSTANCE_METHOD = "instance_method"
    OWN_INSTANCE_METHOD = "own_instance_method"
    INSTANCE_METHOD_SUPER = "instance_method_super"
    CLASS_METHOD = "class_method"

    @classmethod
    def parse(cls, value: MethodVariant | str) -> MethodVariant:
        """Coerce variant name to MethodVariant.

        Raises:
            UnknownVariantError: If value is not a known variant.
        """
        if isinstance(value, MethodVariant):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownVariantError(value) from None
