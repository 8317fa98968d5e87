# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Schemas and shape inference for the Reduce* operators.

Every Reduce* operator shares one schema template.  The template is filled
by :func:`make_reduce_schema`, which only varies the operator name and the
display name used in the documentation.
"""

from __future__ import annotations

__all__ = [
    "REDUCE_OPS",
    "make_reduce_schema",
]

import logging

import onnx_ir as ir
from onnx_ir import schemas

from onnx_reduction_shapes import _context, _registry, _schema
from onnx_reduction_shapes._ops import _utils

logger = logging.getLogger(__name__)

_DEFAULT_KEEPDIMS = 1

_REDUCE_DOC = """
Computes the {name} of the input tensor's element along the provided axes. The resulted
tensor has the same rank as the input if keepdims equal 1. If keepdims equal 0, then
the resulted tensor have the reduced dimension pruned.

The above behavior is similar to numpy, with the exception that numpy default keepdims to
False instead of True."""

# (op_type, display name)
REDUCE_OPS: tuple[tuple[str, str], ...] = (
    ("ReduceMax", "max"),
    ("ReduceMin", "min"),
    ("ReduceSum", "sum"),
    ("ReduceSumSquare", "sum square"),
    ("ReduceMean", "mean"),
    ("ReduceProd", "product"),
    ("ReduceLogSum", "log sum"),
    ("ReduceLogSumExp", "log sum exponent"),
    ("ReduceL1", "L1 norm"),
    ("ReduceL2", "L2 norm"),
)


def _read_axes(node: ir.Node) -> list[int] | None:
    """Read the axes parameter from either the second input or an attribute.

    Newer opsets take ``axes`` as an optional second input instead of an
    attribute.  This helper handles both cases.

    Returns:
        A list of axis integers, or ``None`` if axes are unknown.  An empty
        list means no axes were given.
    """
    if len(node.inputs) >= 2 and node.inputs[1] is not None:
        const = ir.convenience.get_const_tensor(node.inputs[1])
        if const is not None:
            return [int(x) for x in const.numpy().flatten()]
        return None

    axes_attr = node.attributes.get("axes")
    if axes_attr is not None:
        return list(axes_attr.as_ints())
    return []


def _make_reduce_inference(name: str) -> _registry.ShapeInferenceFunc:
    def infer_reduce(ctx: _context.ShapeInferenceContext, node: ir.Node) -> None:
        (data,) = _context.check_inputs(node, "data")
        if len(node.outputs) == 0:
            return
        output = node.outputs[0]

        if data.dtype is not None:
            ctx.force_tensor_dtype(output, data.dtype)

        if not _context.has_known_input_shapes(node, 1):
            logger.debug(
                "Input shape of %s (reduce %s) is unknown; skipping shape", node.name, name
            )
            return

        input_shape = data.shape
        assert input_shape is not None
        rank = input_shape.rank()
        keepdims = _utils.get_int_attr(node, "keepdims", _DEFAULT_KEEPDIMS)
        noop_with_empty_axes = _utils.get_int_attr(node, "noop_with_empty_axes", 0)

        axes = _read_axes(node)
        if axes is None:
            logger.debug(
                "Axes of %s (reduce %s) are not constant; skipping shape", node.name, name
            )
            return

        if not axes:
            if noop_with_empty_axes:
                ctx.set_output_shape(node, output, ir.Shape(list(input_shape.dims)))
                return
            # No axes means "reduce all axes"
            selected = set(range(rank))
        else:
            selected = {_utils.normalize_axis(axis, rank) for axis in axes}

        new_dims = _utils.reduced_dims(input_shape, selected, keepdims == 1)
        ctx.set_output_shape(node, output, ir.Shape(new_dims))

    infer_reduce.__name__ = f"infer_reduce_{name.replace(' ', '_').lower()}"
    return infer_reduce


def make_reduce_schema(op_type: str, name: str, *, since_version: int = 1) -> _schema.OpSchema:
    """Create the schema of a Reduce* operator.

    Args:
        op_type: Operator type, e.g. ``"ReduceSum"``.
        name: Display name of the reduction substituted into the doc string,
            e.g. ``"sum"``.
        since_version: Opset version the schema is introduced in.

    Returns:
        An :class:`~onnx_reduction_shapes._schema.OpSchema` whose inference
        function keeps the element type of the input and reduces the
        selected axes of its shape.
    """
    type_constraint = schemas.TypeConstraintParam(
        "T",
        set(_schema.HIGH_PRECISION_NUMERIC_TYPES),
        "Constrain input and output types to high-precision numeric tensors.",
    )
    signature = schemas.OpSignature(
        domain="",
        name=op_type,
        overload="",
        params=[
            schemas.Parameter(
                name="data", type_constraint=type_constraint, required=True, variadic=False
            ),
            schemas.AttributeParameter(name="axes", type=ir.AttributeType.INTS, required=False),
            schemas.AttributeParameter(
                name="keepdims",
                type=ir.AttributeType.INT,
                required=False,
                default=ir.Attr("keepdims", ir.AttributeType.INT, _DEFAULT_KEEPDIMS),
            ),
        ],
        outputs=[
            schemas.Parameter(
                name="reduced", type_constraint=type_constraint, required=True, variadic=False
            ),
        ],
    )
    return _schema.OpSchema(
        signature,
        since_version,
        _REDUCE_DOC.replace("{name}", name),
        descriptions={
            "data": "An input tensor.",
            "axes": "A list of integers, along which to reduce. The default is to reduce "
            "over all the dimensions of the input tensor.",
            "keepdims": "Keep the reduced dimension or not, default 1 mean keep reduced "
            "dimension.",
            "reduced": "Reduced output tensor.",
        },
        inference_function=_make_reduce_inference(name),
    )


for _op_type, _name in REDUCE_OPS:
    _registry.registry.register_schema(make_reduce_schema(_op_type, _name))
