# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Registry for shape inference functions and operator schemas."""

from __future__ import annotations

__all__ = [
    "OpShapeInferenceRegistry",
    "registry",
]

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import onnx_ir as ir

    from onnx_reduction_shapes._context import ShapeInferenceContext
    from onnx_reduction_shapes._schema import OpSchema

logger = logging.getLogger(__name__)

# Type alias for shape inference functions
ShapeInferenceFunc = Callable[["ShapeInferenceContext", "ir.Node"], None]


class OpShapeInferenceRegistry:
    """Registry for operator shape inference functions.

    Supports registration by (domain, op_type) with since_version semantics.
    When looking up a function, dispatches to the correct version where
    target_version >= since_version and target_version < next_since_version.

    Schemas registered with :meth:`register_schema` make their inference
    function available through :meth:`get` as well.

    Example::

        from onnx_reduction_shapes import registry

        @registry.register("", "ReduceSum", since_version=1)
        def infer_reduce_sum(ctx, node):
            ...

        func = registry.get("", "ReduceSum", version=13)
        schema = registry.get_schema("", "ReduceSum", version=13)
    """

    def __init__(self) -> None:
        # Raw registrations: {(domain, op_type): [(since_version, func), ...]}
        # Sorted by since_version ascending
        self._registrations: dict[tuple[str, str], list[tuple[int, ShapeInferenceFunc]]] = {}
        # {(domain, op_type): [(since_version, schema), ...]}
        self._schemas: dict[tuple[str, str], list[tuple[int, OpSchema]]] = {}
        # Cached lookup table: {(domain, op_type): {version: func}}
        self._cache: dict[tuple[str, str], dict[int, ShapeInferenceFunc]] = {}
        # Track max since_version per key for O(1) lookup beyond cache
        self._max_version: dict[tuple[str, str], tuple[int, ShapeInferenceFunc]] = {}

    def register(
        self,
        domain: str,
        op_type: str,
        since_version: int = 1,
    ) -> Callable[[ShapeInferenceFunc], ShapeInferenceFunc]:
        """Register a shape inference function for an operator.

        Can be used as a decorator or called directly.

        Args:
            domain: ONNX domain (e.g., "", "com.microsoft").
            op_type: Operator type (e.g., "ReduceSum", "ArgMax").
            since_version: The minimum opset version this function applies to.
                The function will be used for all versions >= since_version
                until a newer registration with a higher since_version exists.

        Returns:
            A decorator that registers the function.
        """

        def decorator(func: ShapeInferenceFunc) -> ShapeInferenceFunc:
            key = (domain, op_type)

            if key not in self._registrations:
                self._registrations[key] = []

            self._registrations[key].append((since_version, func))
            self._registrations[key].sort(key=lambda x: x[0])

            # Invalidate cache for this key since registrations changed
            self._cache.pop(key, None)
            self._max_version.pop(key, None)

            logger.debug(
                "Registered shape inference for %s::%s (since_version=%s)",
                domain or "ai.onnx",
                op_type,
                since_version,
            )
            return func

        return decorator

    def register_schema(self, schema: OpSchema) -> OpSchema:
        """Register an operator schema and its inference function.

        Args:
            schema: The schema to register.  Its ``inference_function``, when
                set, is registered under the schema's domain, name and
                ``since_version``.

        Returns:
            The schema, unchanged.

        Raises:
            ValueError: If a schema for the same operator and
                ``since_version`` is already registered.
        """
        key = (schema.domain, schema.name)
        entries = self._schemas.setdefault(key, [])
        if any(version == schema.since_version for version, _ in entries):
            raise ValueError(
                f"Schema for {schema.domain or 'ai.onnx'}::{schema.name} "
                f"(since_version={schema.since_version}) is already registered"
            )
        entries.append((schema.since_version, schema))
        entries.sort(key=lambda x: x[0])

        if schema.inference_function is not None:
            self.register(schema.domain, schema.name, schema.since_version)(
                schema.inference_function
            )
        return schema

    def _build_cache(self, key: tuple[str, str]) -> None:
        """Build the O(1) lookup cache for a given (domain, op_type) key."""
        if key not in self._registrations:
            return

        registrations = self._registrations[key]
        if not registrations:
            return

        cache: dict[int, ShapeInferenceFunc] = {}

        for i, (since_ver, func) in enumerate(registrations):
            # Determine the end version (exclusive) for this registration
            if i + 1 < len(registrations):
                end_ver = registrations[i + 1][0]
            else:
                end_ver = since_ver + 1

            for ver in range(since_ver, end_ver):
                cache[ver] = func

        self._cache[key] = cache

        max_since, max_func = registrations[-1]
        self._max_version[key] = (max_since, max_func)

    def get(
        self,
        domain: str,
        op_type: str,
        version: int,
    ) -> ShapeInferenceFunc | None:
        """Get the shape inference function for an operator.

        Args:
            domain: ONNX domain.
            op_type: Operator type.
            version: Opset version to look up.

        Returns:
            The shape inference function, or None if not found.

        Complexity: O(1) after first lookup for a given (domain, op_type).
        """
        key = (domain, op_type)

        if key not in self._cache and key in self._registrations:
            self._build_cache(key)

        if key not in self._cache:
            return None

        cache = self._cache[key]

        if version in cache:
            return cache[version]

        if key in self._max_version:
            max_since, max_func = self._max_version[key]
            if version >= max_since:
                return max_func

        # Version is below all registered since_versions
        return None

    def get_schema(
        self,
        domain: str,
        op_type: str,
        version: int,
    ) -> OpSchema | None:
        """Get the schema in effect for an operator at an opset version.

        Returns:
            The schema with the highest ``since_version`` not greater than
            *version*, or None if there is none.
        """
        found: OpSchema | None = None
        for since_version, schema in self._schemas.get((domain, op_type), ()):
            if since_version > version:
                break
            found = schema
        return found

    def has(self, domain: str, op_type: str) -> bool:
        """Check if any shape inference function is registered for an operator."""
        key = (domain, op_type)
        return key in self._registrations and len(self._registrations[key]) > 0

    def clear(self) -> None:
        """Clear all registered functions and schemas (mainly for testing)."""
        self._registrations.clear()
        self._schemas.clear()
        self._cache.clear()
        self._max_version.clear()


# Global registry instance
registry = OpShapeInferenceRegistry()
