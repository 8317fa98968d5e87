# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Shape inference for a single operator invocation.

Each call looks up the registered rule for one node and applies it.
Nothing is propagated beyond the node's own outputs.
"""

from __future__ import annotations

__all__ = [
    "infer_node",
]

import logging
from collections.abc import Mapping

import onnx_ir as ir

from onnx_reduction_shapes import _context, _registry

logger = logging.getLogger(__name__)

# Ops already warned about, so that a missing rule is reported once
_warned_ops: set[tuple[str, str]] = set()


def infer_node(
    node: ir.Node,
    *,
    opset_imports: Mapping[str, int] | None = None,
    policy: _context.ShapeMergePolicy = "refine",
    warn_on_missing: bool = True,
) -> bool:
    """Infer the output types and shapes of *node* in place.

    Args:
        node: The node to run shape inference on.  Its outputs are updated.
        opset_imports: Mapping from domain to opset version used to pick the
            rule version.  Defaults to the opset imports of the graph owning
            *node*, or ``{"": 1}`` when the node is detached.
        policy: How to merge inferred shapes with existing shapes.
        warn_on_missing: If ``True``, log a warning for an op without a
            registered rule.

    Returns:
        ``True`` if the shape or type of any output changed.

    Raises:
        OpUsageError: If the node is structurally invalid.
        ShapeInferenceError: If an existing output shape conflicts with the
            inferred one (unless *policy* is ``"skip"`` or ``"override"``),
            or if the rule failed unexpectedly.

    Example::

        import onnx_ir as ir
        from onnx_reduction_shapes import infer_node

        x = ir.Value(name="x", shape=ir.Shape([2, 3, 4]), type=ir.TensorType(ir.DataType.FLOAT))
        node = ir.node("ReduceSum", [x], attributes={"axes": [1], "keepdims": 0})
        infer_node(node)
        node.outputs[0].shape  # Shape([2, 4])
    """
    # Import ops to trigger registration
    from onnx_reduction_shapes import _ops  # noqa: F401

    if opset_imports is None and node.graph is not None:
        opset_imports = node.graph.opset_imports
    ctx = _context.ShapeInferenceContext(opset_imports, policy=policy)

    domain = node.domain or ""
    op_type = node.op_type
    opset_version = ctx.get_opset_version(domain)

    infer_func = _registry.registry.get(domain, op_type, version=opset_version)
    if infer_func is None:
        key = (domain, op_type)
        if warn_on_missing and key not in _warned_ops:
            logger.warning(
                "No shape inference registered for %s::%s",
                domain or "ai.onnx",
                op_type,
            )
            _warned_ops.add(key)
        return False

    old_states = [(out.shape, out.type) for out in node.outputs]
    try:
        infer_func(ctx, node)
    except (_context.OpUsageError, _context.ShapeInferenceError):
        raise
    except Exception as e:
        raise _context.ShapeInferenceError(
            node_name=node.name,
            op_type=op_type,
            domain=domain,
            message=f"Shape inference failed for {domain}::{op_type}",
        ) from e

    return any(
        out.shape != old_shape or out.type != old_type
        for out, (old_shape, old_type) in zip(node.outputs, old_states)
    )
