# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Operator schemas: the metadata an inference rule is registered with.

The signature of an operator (inputs, attributes, outputs and their type
constraints) is an :class:`onnx_ir.schemas.OpSignature`.  :class:`OpSchema`
pairs it with the documentation text and the shape inference function.
"""

from __future__ import annotations

__all__ = [
    "ALL_NUMERIC_TYPES",
    "HIGH_PRECISION_NUMERIC_TYPES",
    "OpSchema",
]

import dataclasses
from collections.abc import Mapping

import onnx_ir as ir
from onnx_ir import schemas

from onnx_reduction_shapes._registry import ShapeInferenceFunc

# Numeric tensor types accepted by the Reduce* family
HIGH_PRECISION_NUMERIC_TYPES = frozenset(
    ir.TensorType(dtype)
    for dtype in (
        ir.DataType.UINT32,
        ir.DataType.UINT64,
        ir.DataType.INT32,
        ir.DataType.INT64,
        ir.DataType.FLOAT16,
        ir.DataType.FLOAT,
        ir.DataType.DOUBLE,
    )
)

# All numeric tensor types, accepted by ArgMax/ArgMin
ALL_NUMERIC_TYPES = HIGH_PRECISION_NUMERIC_TYPES | frozenset(
    ir.TensorType(dtype)
    for dtype in (
        ir.DataType.UINT8,
        ir.DataType.UINT16,
        ir.DataType.INT8,
        ir.DataType.INT16,
    )
)


@dataclasses.dataclass(frozen=True)
class OpSchema:
    """Everything registered for one operator at one ``since_version``.

    Attributes:
        signature: Inputs, attributes and outputs of the operator.
        since_version: The opset version the schema is introduced in.
        doc: Human-readable documentation.
        descriptions: Description of each input, attribute and output, by name.
        inference_function: The shape inference rule, if any.
    """

    signature: schemas.OpSignature
    since_version: int
    doc: str
    descriptions: Mapping[str, str] = dataclasses.field(default_factory=dict)
    inference_function: ShapeInferenceFunc | None = None

    @property
    def domain(self) -> str:
        return self.signature.domain

    @property
    def name(self) -> str:
        return self.signature.name

    def attribute(self, name: str) -> schemas.AttributeParameter | None:
        """Look up an attribute declaration by name."""
        param = self.signature.params_map.get(name)
        if isinstance(param, schemas.AttributeParameter):
            return param
        return None

    def check_input_types(self, node: ir.Node) -> list[str]:
        """Describe inputs of *node* whose type violates this schema.

        Inputs with an unknown type are not reported.  This is purely
        informational and is never called by the inference rules.
        """
        problems: list[str] = []
        for param, value in zip(self.signature.inputs, node.inputs):
            if value is None or value.type is None:
                continue
            constraint = param.type_constraint
            if value.type not in constraint.allowed_types:
                problems.append(
                    f"Input '{param.name}' has type {value.type!r}, "
                    f"which is not allowed by {constraint.name}"
                )
        return problems
