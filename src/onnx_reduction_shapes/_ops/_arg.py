# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Schemas and shape inference for the ArgMax and ArgMin operators."""

from __future__ import annotations

__all__ = [
    "ARG_REDUCE_OPS",
    "make_arg_reduce_schema",
]

import logging

import onnx_ir as ir
from onnx_ir import schemas

from onnx_reduction_shapes import _context, _registry, _schema
from onnx_reduction_shapes._ops import _utils

logger = logging.getLogger(__name__)

_DEFAULT_AXIS = 0
_DEFAULT_KEEPDIMS = 1

_ARG_REDUCE_DOC = """
Computes the indices of the {name} elements of the input tensor's element along the
provided axis. The resulted tensor has the same rank as the input if keepdims equal 1.
If keepdims equal 0, then the resulted tensor have the reduced dimension pruned.
The type of the output tensor is integer."""

ARG_REDUCE_OPS: tuple[tuple[str, str], ...] = (
    ("ArgMax", "max"),
    ("ArgMin", "min"),
)


def _make_arg_reduce_inference(name: str) -> _registry.ShapeInferenceFunc:
    def infer_arg_reduce(ctx: _context.ShapeInferenceContext, node: ir.Node) -> None:
        (data,) = _context.check_inputs(node, "data")
        if len(node.outputs) == 0:
            return
        output = node.outputs[0]

        # Indices are always int64, whatever the input type
        ctx.force_tensor_dtype(output, ir.DataType.INT64)

        if not _context.has_known_input_shapes(node, 1):
            logger.debug(
                "Input shape of %s (arg %s) is unknown; skipping shape", node.name, name
            )
            return

        input_shape = data.shape
        assert input_shape is not None
        rank = input_shape.rank()
        axis = _utils.normalize_axis(_utils.get_int_attr(node, "axis", _DEFAULT_AXIS), rank)
        keepdims = _utils.get_int_attr(node, "keepdims", _DEFAULT_KEEPDIMS)

        new_dims = _utils.reduced_dims(input_shape, {axis}, keepdims == 1)
        ctx.set_output_shape(node, output, ir.Shape(new_dims))

    infer_arg_reduce.__name__ = f"infer_arg{name}"
    return infer_arg_reduce


def make_arg_reduce_schema(
    op_type: str, name: str, *, since_version: int = 1
) -> _schema.OpSchema:
    """Create the schema of an arg-reduce operator such as ``ArgMax``."""
    data_constraint = schemas.TypeConstraintParam(
        "T",
        set(_schema.ALL_NUMERIC_TYPES),
        "Constrain input and output types to all numeric tensors.",
    )
    # The output type is fixed rather than bound to a type variable
    output_constraint = schemas.TypeConstraintParam(
        "tensor(int64)", {ir.TensorType(ir.DataType.INT64)}
    )
    signature = schemas.OpSignature(
        domain="",
        name=op_type,
        overload="",
        params=[
            schemas.Parameter(
                name="data", type_constraint=data_constraint, required=True, variadic=False
            ),
            schemas.AttributeParameter(
                name="axis",
                type=ir.AttributeType.INT,
                required=False,
                default=ir.Attr("axis", ir.AttributeType.INT, _DEFAULT_AXIS),
            ),
            schemas.AttributeParameter(
                name="keepdims",
                type=ir.AttributeType.INT,
                required=False,
                default=ir.Attr("keepdims", ir.AttributeType.INT, _DEFAULT_KEEPDIMS),
            ),
        ],
        outputs=[
            schemas.Parameter(
                name="reduced", type_constraint=output_constraint, required=True, variadic=False
            ),
        ],
    )
    return _schema.OpSchema(
        signature,
        since_version,
        _ARG_REDUCE_DOC.replace("{name}", name),
        descriptions={
            "data": "An input tensor.",
            "axis": "The axis in which to compute the arg indices. Default is 0.",
            "keepdims": "Keep the reduced dimension or not, default 1 mean keep reduced "
            "dimension.",
            "reduced": "Reduced output tensor with integer data type.",
        },
        inference_function=_make_arg_reduce_inference(name),
    )


for _op_type, _name in ARG_REDUCE_OPS:
    _registry.registry.register_schema(make_arg_reduce_schema(_op_type, _name))
