# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Unit tests for the single-node shape inference entry point (_engine.py)."""

from __future__ import annotations

import unittest
from unittest import mock

import onnx_ir as ir
from onnx_reduction_shapes import _context, _engine, _registry

FLOAT = ir.DataType.FLOAT


def _float_value(name: str, shape: list[int | str | None] | None) -> ir.Value:
    return ir.Value(
        name=name,
        type=ir.TensorType(FLOAT),
        shape=ir.Shape(shape) if shape is not None else None,
    )


class InferNodeTest(unittest.TestCase):
    def test_infers_reduce_shape(self):
        x = _float_value("x", [2, 3, 4])
        node = ir.Node(
            "",
            "ReduceSum",
            inputs=[x],
            attributes=[
                ir.Attr("axes", ir.AttributeType.INTS, [1]),
                ir.Attr("keepdims", ir.AttributeType.INT, 0),
            ],
            num_outputs=1,
        )

        modified = _engine.infer_node(node)

        self.assertTrue(modified)
        self.assertEqual(node.outputs[0].shape, ir.Shape([2, 4]))
        self.assertEqual(node.outputs[0].dtype, FLOAT)

    def test_infers_argmax_shape_and_dtype(self):
        x = _float_value("x", [5, 6])
        node = ir.Node(
            "",
            "ArgMax",
            inputs=[x],
            attributes=[
                ir.Attr("axis", ir.AttributeType.INT, -1),
                ir.Attr("keepdims", ir.AttributeType.INT, 0),
            ],
            num_outputs=1,
        )

        _engine.infer_node(node)

        self.assertEqual(node.outputs[0].shape, ir.Shape([5]))
        self.assertEqual(node.outputs[0].dtype, ir.DataType.INT64)

    def test_uses_opset_of_owning_graph(self):
        x = _float_value("x", [2, 3])
        node = ir.Node("", "ReduceMax", inputs=[x], num_outputs=1)
        ir.Graph([x], node.outputs, nodes=[node], opset_imports={"": 11})

        _engine.infer_node(node)

        self.assertEqual(node.outputs[0].shape, ir.Shape([1, 1]))

    def test_returns_false_when_nothing_changes(self):
        x = _float_value("x", [2, 3])
        node = ir.Node("", "ReduceMin", inputs=[x], num_outputs=1)

        self.assertTrue(_engine.infer_node(node))
        self.assertFalse(_engine.infer_node(node))

    def test_stale_output_dtype_is_replaced_by_input_dtype(self):
        x = _float_value("x", [2, 3, 4])
        out = ir.Value(name="out", type=ir.TensorType(ir.DataType.INT32))
        node = ir.Node(
            "",
            "ReduceSum",
            inputs=[x],
            outputs=[out],
            attributes=[ir.Attr("axes", ir.AttributeType.INTS, [1])],
        )

        self.assertTrue(_engine.infer_node(node))

        self.assertEqual(out.dtype, FLOAT)
        self.assertEqual(out.shape, ir.Shape([2, 1, 4]))

    def _node_with_stale_output_shape(self) -> ir.Node:
        x = _float_value("x", [2, 3, 4])
        out = _float_value("out", [2, 3, 4])
        return ir.Node(
            "",
            "ReduceSum",
            inputs=[x],
            outputs=[out],
            attributes=[
                ir.Attr("axes", ir.AttributeType.INTS, [1]),
                ir.Attr("keepdims", ir.AttributeType.INT, 0),
            ],
        )

    def test_output_shape_of_other_rank_raises_under_refine(self):
        node = self._node_with_stale_output_shape()

        with self.assertRaises(_context.ShapeInferenceError):
            _engine.infer_node(node)

        self.assertEqual(node.outputs[0].shape, ir.Shape([2, 3, 4]))

    def test_output_shape_of_other_rank_is_replaced_under_override(self):
        node = self._node_with_stale_output_shape()

        self.assertTrue(_engine.infer_node(node, policy="override"))

        self.assertEqual(node.outputs[0].shape, ir.Shape([2, 4]))

    def test_output_shape_of_other_rank_is_logged_under_skip(self):
        node = self._node_with_stale_output_shape()

        with self.assertLogs("onnx_reduction_shapes._context", level="WARNING"):
            modified = _engine.infer_node(node, policy="skip")

        self.assertFalse(modified)
        self.assertEqual(node.outputs[0].shape, ir.Shape([2, 3, 4]))

    def test_unknown_input_shape_leaves_output_shape_unset(self):
        x = _float_value("x", None)
        node = ir.Node("", "ReduceMean", inputs=[x], num_outputs=1)

        _engine.infer_node(node)

        self.assertIsNone(node.outputs[0].shape)
        self.assertEqual(node.outputs[0].dtype, FLOAT)

    def test_unregistered_op_is_skipped(self):
        x = _float_value("x", [2])
        node = ir.Node("com.unknown", "FooBarOp", inputs=[x], num_outputs=1)

        with self.assertLogs("onnx_reduction_shapes._engine", level="WARNING"):
            modified = _engine.infer_node(node)

        self.assertFalse(modified)
        self.assertIsNone(node.outputs[0].shape)

    def test_missing_data_input_raises_usage_error(self):
        node = ir.Node("", "ReduceSum", inputs=[None], num_outputs=1)

        with self.assertRaises(_context.OpUsageError):
            _engine.infer_node(node)

    def test_unexpected_failure_is_wrapped(self):
        fresh = _registry.OpShapeInferenceRegistry()

        @fresh.register("com.test", "Boom")
        def infer_boom(ctx, node):
            raise RuntimeError("boom")

        node = ir.Node("com.test", "Boom", inputs=[], num_outputs=1, name="n0")
        with mock.patch.object(_registry, "registry", fresh):
            with self.assertRaises(_context.ShapeInferenceError) as cm:
                _engine.infer_node(node, opset_imports={"com.test": 1})

        self.assertEqual(cm.exception.node_name, "n0")
        self.assertIsInstance(cm.exception.__cause__, RuntimeError)


if __name__ == "__main__":
    unittest.main()
