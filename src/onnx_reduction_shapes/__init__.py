# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Shape and type inference for the ONNX reduction operators.

Covers the Reduce* family (``ReduceSum``, ``ReduceMean``, ``ReduceMax``, ...)
and the arg-reduce family (``ArgMax``, ``ArgMin``).  Each operator is
described by an :class:`OpSchema` whose inference function computes the
output shape and element type of a node from its attributes and the
shape/type of its input, without executing it.

Example::

    import onnx_ir as ir
    from onnx_reduction_shapes import infer_node

    x = ir.Value(name="x", shape=ir.Shape([2, 3, 4]), type=ir.TensorType(ir.DataType.FLOAT))
    node = ir.node("ReduceMean", [x], attributes={"axes": [1]})
    infer_node(node)
    node.outputs[0].shape  # Shape([2, 1, 4])

Looking up a schema::

    from onnx_reduction_shapes import registry

    schema = registry.get_schema("", "ArgMax", version=1)
    print(schema.doc)
"""

from __future__ import annotations

__all__ = [
    # Main API
    "infer_node",
    # Context and policy
    "OpUsageError",
    "ShapeInferenceContext",
    "ShapeInferenceError",
    "ShapeMergePolicy",
    # Registry
    "OpShapeInferenceRegistry",
    "registry",
    # Schemas
    "OpSchema",
    # Utilities
    "check_inputs",
    "has_known_input_shapes",
]

from onnx_reduction_shapes import _ops  # noqa: F401
from onnx_reduction_shapes._context import (
    OpUsageError,
    ShapeInferenceContext,
    ShapeInferenceError,
    ShapeMergePolicy,
    check_inputs,
    has_known_input_shapes,
)
from onnx_reduction_shapes._engine import infer_node
from onnx_reduction_shapes._registry import OpShapeInferenceRegistry, registry
from onnx_reduction_shapes._schema import OpSchema


def __set_module() -> None:
    """Set the module of all functions in this module to this public module."""
    global_dict = globals()
    for name in __all__:
        obj = global_dict[name]
        if hasattr(obj, "__module__"):
            obj.__module__ = __name__


__set_module()

__version__ = "0.1.0"
