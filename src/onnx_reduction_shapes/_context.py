# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Shape inference context and merge policies."""

from __future__ import annotations

__all__ = [
    "OpUsageError",
    "ShapeInferenceContext",
    "ShapeInferenceError",
    "ShapeMergePolicy",
    "check_inputs",
    "has_known_input_shapes",
]

import logging
from collections.abc import Mapping, Sequence
from typing import Literal

import onnx_ir as ir

logger = logging.getLogger(__name__)


class ShapeInferenceError(ValueError):
    """A recorded error from shape inference.

    Can be raised directly (it is a :class:`ValueError` subclass) or stored
    for later inspection via :attr:`ShapeInferenceContext.errors`.

    Attributes:
        node_name: The name of the node (or ``None`` if unnamed).
        op_type: The operator type (e.g. ``"ReduceSum"``).
        domain: The operator domain.
        message: Human-readable description of the error.
    """

    def __init__(
        self,
        *,
        node_name: str | None,
        op_type: str,
        domain: str,
        message: str,
    ) -> None:
        self.node_name = node_name
        self.op_type = op_type
        self.domain = domain
        self.message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        op_id = f"{self.domain}::{self.op_type}" if self.domain else self.op_type
        node_desc = f" (node {self.node_name!r})" if self.node_name else ""
        return f"{op_id}{node_desc}: {self.message}"


class OpUsageError(ValueError):
    """Raised when an operator node has invalid structure.

    This indicates the model is malformed, e.g. the node has no ``data``
    input to reduce.
    """

    def __init__(self, node: ir.Node, message: str) -> None:
        self.node = node
        self.message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        op_id = (
            f"{self.node.domain}::{self.node.op_type}"
            if self.node.domain
            else self.node.op_type
        )
        node_desc = f" (node {self.node.name!r})" if self.node.name else ""
        return f"{op_id}{node_desc}: {self.message}"


def check_inputs(node: ir.Node, *names: str) -> tuple[ir.Value, ...]:
    """Validate that required positional inputs exist and are not None.

    Args:
        node: The node to validate.
        *names: Names of required inputs, in positional order.

    Returns:
        A tuple of :class:`ir.Value` for each required input.

    Raises:
        OpUsageError: If the node has fewer inputs than required or
            any required input is ``None``.
    """
    min_count = len(names)
    if len(node.inputs) < min_count:
        raise OpUsageError(
            node,
            f"Expected at least {min_count} input(s), got {len(node.inputs)}",
        )
    values: list[ir.Value] = []
    for i, name in enumerate(names):
        v = node.inputs[i]
        if v is None:
            raise OpUsageError(
                node,
                f"Required input '{name}' (#{i}) is None",
            )
        values.append(v)
    return tuple(values)


def has_known_input_shapes(node: ir.Node, n: int) -> bool:
    """Return whether the first *n* inputs of *node* all have a known shape.

    A missing input or an input without a shape (unknown rank) makes the
    result ``False``. Rules use this to decide whether shape propagation
    can proceed or only the element type should be written.
    """
    if len(node.inputs) < n:
        return False
    for i in range(n):
        value = node.inputs[i]
        if value is None or value.shape is None:
            return False
    return True


ShapeMergePolicy = Literal["skip", "override", "refine", "strict"]
"""Policy for merging inferred shapes with existing values.

* ``"skip"``: Don't update if a shape already exists.
* ``"override"``: Always replace with the inferred shape.
* ``"refine"``: Only update if inferred is more specific
    (concrete beats symbolic, named symbolic beats None).
* ``"strict"``: Fail if the inferred shape conflicts with the existing one.

Element types fixed by an operator always overwrite a stale annotation.
"""


def _is_more_specific(
    inferred_dim: int | ir.SymbolicDim,
    existing_dim: int | ir.SymbolicDim,
) -> bool:
    """Check if the inferred dimension is more specific than the existing one.

    Specificity order: concrete int > named symbolic > unknown (None)
    """
    if isinstance(inferred_dim, int):
        return not isinstance(existing_dim, int)

    if isinstance(inferred_dim, ir.SymbolicDim) and inferred_dim.value is not None:
        if isinstance(existing_dim, ir.SymbolicDim) and existing_dim.value is None:
            return True

    return False


def _dims_conflict(
    dim1: int | ir.SymbolicDim,
    dim2: int | ir.SymbolicDim,
) -> bool:
    """Check if two dimensions conflict (both concrete but different values)."""
    if isinstance(dim1, int) and isinstance(dim2, int):
        return dim1 != dim2
    return False


class ShapeInferenceContext:
    """Context for shape and type inference of a single operator invocation.

    Holds the opset imports used to select a rule version and the merge
    policy applied when a rule writes to an output value.

    Attributes:
        opset_imports: Mapping from domain to opset version.
        policy: The shape merge policy.
    """

    def __init__(
        self,
        opset_imports: Mapping[str, int] | None = None,
        policy: ShapeMergePolicy = "refine",
    ) -> None:
        """Initialize the shape inference context.

        Args:
            opset_imports: Mapping from ONNX domain to opset version
                (e.g. ``{"": 17}``).  When ``None``, defaults to ``{"": 1}``.
            policy: The shape merge policy to use.
        """
        self.opset_imports: Mapping[str, int] = opset_imports or {"": 1}
        self.policy = policy

        self._errors: list[ShapeInferenceError] = []

    @property
    def opset(self) -> int:
        """Get the default opset version for inference."""
        return self.opset_imports.get("", 1)

    def get_opset_version(self, domain: str) -> int:
        """Get the opset version for a specific domain."""
        if domain in self.opset_imports:
            return self.opset_imports[domain]
        if domain in ("", "ai.onnx"):
            return self.opset
        return 1

    def record_error(self, node: ir.Node, message: str) -> None:
        """Record a shape inference error for a node.

        The error is raised immediately unless the merge policy is ``"skip"``,
        in which case it is only logged and appended to :attr:`errors`.

        Raises:
            ShapeInferenceError: If the merge policy is not ``"skip"``.
        """
        error = ShapeInferenceError(
            node_name=node.name,
            op_type=node.op_type,
            domain=node.domain,
            message=message,
        )
        self._errors.append(error)
        if self.policy == "skip":
            logger.warning("Shape inference error: %s", error)
            return
        raise error

    @property
    def errors(self) -> Sequence[ShapeInferenceError]:
        """All errors recorded during shape inference."""
        return self._errors

    def set_shape(self, value: ir.Value, shape: ir.Shape) -> bool:
        """Set the shape of a value according to the merge policy.

        Args:
            value: The value to set the shape on.
            shape: The inferred shape.

        Returns:
            True if the shape was updated, False otherwise.

        Raises:
            ValueError: If policy is ``"strict"`` and shapes conflict.
        """
        existing = value.shape

        if existing is None:
            value.shape = shape
            return True

        if self.policy == "skip":
            return False

        if self.policy == "override":
            value.shape = shape
            return True

        if self.policy == "strict":
            if existing.rank() != shape.rank():
                raise ValueError(
                    f"Shape rank mismatch for {value.name}: "
                    f"existing {existing.rank()} vs inferred {shape.rank()}"
                )
            for i, (e_dim, i_dim) in enumerate(zip(existing.dims, shape.dims)):
                if _dims_conflict(e_dim, i_dim):
                    raise ValueError(
                        f"Shape conflict for {value.name} at dim {i}: "
                        f"existing {e_dim} vs inferred {i_dim}"
                    )
            return self._refine_shape(value, existing, shape)

        return self._refine_shape(value, existing, shape)

    def _refine_shape(self, value: ir.Value, existing: ir.Shape, inferred: ir.Shape) -> bool:
        """Refine existing shape with inferred shape, keeping more specific dims."""
        if existing.rank() != inferred.rank():
            # Can't refine if ranks differ; keep existing
            return False

        modified = False
        new_dims: list[int | ir.SymbolicDim] = []

        for e_dim, i_dim in zip(existing.dims, inferred.dims):
            if _is_more_specific(i_dim, e_dim):
                new_dims.append(i_dim)
                modified = True
            else:
                new_dims.append(e_dim)

        if modified:
            value.shape = ir.Shape(new_dims)

        return modified

    def set_output_shape(self, node: ir.Node, value: ir.Value, shape: ir.Shape) -> bool:
        """Set the inferred shape of an output of *node*.

        An existing shape of a different rank cannot be merged with the
        inferred one. Under every policy except ``"override"`` this is
        recorded as an error for *node* (raised unless the policy is
        ``"skip"``) and the existing shape is kept.

        Returns:
            True if the shape was updated, False otherwise.

        Raises:
            ShapeInferenceError: If the ranks conflict and the policy is
                ``"refine"`` or ``"strict"``.
        """
        existing = value.shape
        if (
            existing is not None
            and existing.rank() != shape.rank()
            and self.policy != "override"
        ):
            self.record_error(
                node,
                f"Inferred shape {shape} of output {value.name!r} has rank {shape.rank()}, "
                f"but the existing shape {existing} has rank {existing.rank()}",
            )
            return False
        return self.set_shape(value, shape)

    def force_tensor_dtype(self, value: ir.Value, dtype: ir.DataType) -> bool:
        """Overwrite the element type of a tensor-typed (or untyped) value.

        Unlike :meth:`set_shape` this ignores the merge policy: an operator
        whose output element type is fixed by definition always wins over a
        stale annotation. Values whose type is not a tensor type (sequence,
        optional, sparse) are left untouched.

        Returns:
            True if the type was updated, False otherwise.
        """
        existing = value.type
        if existing is not None and not isinstance(existing, ir.TensorType):
            logger.debug(
                "Not overwriting non-tensor type %r of %s with %s",
                existing,
                value.name,
                dtype,
            )
            return False
        if existing is not None and existing.dtype == dtype:
            return False
        value.type = ir.TensorType(dtype)
        return True
