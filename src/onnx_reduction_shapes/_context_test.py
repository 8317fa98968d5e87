# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Tests for ShapeMergePolicy in ShapeInferenceContext."""

from __future__ import annotations

import unittest

import parameterized

import onnx_ir as ir
from onnx_reduction_shapes._context import (
    ShapeInferenceContext,
    ShapeInferenceError,
    has_known_input_shapes,
)


class ShapeMergePolicyTest(unittest.TestCase):
    """Tests for ShapeMergePolicy in context."""

    def test_skip_policy_keeps_existing(self):
        value = ir.Value(name="test", shape=ir.Shape([1, 2, 3]))
        ctx = ShapeInferenceContext(policy="skip")

        modified = ctx.set_shape(value, ir.Shape([4, 5, 6]))
        self.assertFalse(modified)
        self.assertEqual(value.shape, [1, 2, 3])

    def test_override_policy_replaces(self):
        value = ir.Value(name="test", shape=ir.Shape([1, 2, 3]))
        ctx = ShapeInferenceContext(policy="override")

        modified = ctx.set_shape(value, ir.Shape([4, 5, 6]))
        self.assertTrue(modified)
        self.assertEqual(value.shape, [4, 5, 6])

    def test_refine_policy_updates_unknown_to_known(self):
        value = ir.Value(name="test", shape=ir.Shape([None, 2, 3]))
        ctx = ShapeInferenceContext(policy="refine")

        modified = ctx.set_shape(value, ir.Shape([1, 2, 3]))
        self.assertTrue(modified)
        self.assertEqual(value.shape, [1, 2, 3])

    def test_refine_policy_keeps_concrete(self):
        value = ir.Value(name="test", shape=ir.Shape([1, 2, 3]))
        ctx = ShapeInferenceContext(policy="refine")

        modified = ctx.set_shape(value, ir.Shape(["batch", 2, 3]))
        self.assertFalse(modified)
        self.assertEqual(value.shape, [1, 2, 3])

    def test_strict_policy_raises_on_conflict(self):
        value = ir.Value(name="test", shape=ir.Shape([1, 2, 3]))
        ctx = ShapeInferenceContext(policy="strict")

        with self.assertRaises(ValueError) as cm:
            ctx.set_shape(value, ir.Shape([4, 2, 3]))
        self.assertIn("conflict", str(cm.exception).lower())


class SetOutputShapeTest(unittest.TestCase):
    def setUp(self):
        self.output = ir.Value(name="out", shape=ir.Shape([2, 3, 4]))
        self.node = ir.Node(
            "", "ReduceSum", inputs=[], outputs=[self.output], name="reduce0"
        )

    def test_same_rank_is_merged(self):
        output = ir.Value(name="out", shape=ir.Shape([None, 1]))
        node = ir.Node("", "ReduceSum", inputs=[], outputs=[output])
        ctx = ShapeInferenceContext(policy="refine")

        self.assertTrue(ctx.set_output_shape(node, output, ir.Shape([2, 1])))
        self.assertEqual(output.shape, [2, 1])
        self.assertEqual(ctx.errors, [])

    @parameterized.parameterized.expand([("refine",), ("strict",)])
    def test_rank_conflict_raises(self, policy):
        ctx = ShapeInferenceContext(policy=policy)

        with self.assertRaises(ShapeInferenceError) as cm:
            ctx.set_output_shape(self.node, self.output, ir.Shape([2, 4]))
        self.assertEqual(cm.exception.node_name, "reduce0")
        self.assertIn("'out'", cm.exception.message)
        self.assertEqual(self.output.shape, [2, 3, 4])
        self.assertEqual(len(ctx.errors), 1)

    def test_rank_conflict_is_logged_under_skip(self):
        ctx = ShapeInferenceContext(policy="skip")

        with self.assertLogs("onnx_reduction_shapes._context", level="WARNING"):
            modified = ctx.set_output_shape(self.node, self.output, ir.Shape([2, 4]))
        self.assertFalse(modified)
        self.assertEqual(self.output.shape, [2, 3, 4])
        self.assertEqual(len(ctx.errors), 1)

    def test_rank_conflict_is_replaced_under_override(self):
        ctx = ShapeInferenceContext(policy="override")

        self.assertTrue(ctx.set_output_shape(self.node, self.output, ir.Shape([2, 4])))
        self.assertEqual(self.output.shape, [2, 4])
        self.assertEqual(ctx.errors, [])


class ForceTensorDtypeTest(unittest.TestCase):
    def test_sets_untyped_value(self):
        value = ir.Value(name="test")
        ctx = ShapeInferenceContext(policy="skip")

        self.assertTrue(ctx.force_tensor_dtype(value, ir.DataType.INT64))
        self.assertEqual(value.type, ir.TensorType(ir.DataType.INT64))

    def test_overwrites_tensor_dtype_regardless_of_policy(self):
        value = ir.Value(name="test", type=ir.TensorType(ir.DataType.FLOAT))
        ctx = ShapeInferenceContext(policy="skip")

        self.assertTrue(ctx.force_tensor_dtype(value, ir.DataType.INT64))
        self.assertEqual(value.dtype, ir.DataType.INT64)

    def test_same_dtype_is_not_a_change(self):
        value = ir.Value(name="test", type=ir.TensorType(ir.DataType.INT64))
        ctx = ShapeInferenceContext()

        self.assertFalse(ctx.force_tensor_dtype(value, ir.DataType.INT64))

    def test_keeps_non_tensor_type(self):
        optional_type = ir.OptionalType(ir.TensorType(ir.DataType.FLOAT))
        value = ir.Value(name="test", type=optional_type)
        ctx = ShapeInferenceContext(policy="override")

        self.assertFalse(ctx.force_tensor_dtype(value, ir.DataType.INT64))
        self.assertEqual(value.type, optional_type)


class HasKnownInputShapesTest(unittest.TestCase):
    def test_known(self):
        x = ir.Value(name="x", shape=ir.Shape([2, 3]))
        node = ir.Node("", "ReduceSum", inputs=[x], num_outputs=1)
        self.assertTrue(has_known_input_shapes(node, 1))

    def test_scalar_shape_is_known(self):
        x = ir.Value(name="x", shape=ir.Shape([]))
        node = ir.Node("", "ReduceSum", inputs=[x], num_outputs=1)
        self.assertTrue(has_known_input_shapes(node, 1))

    def test_unknown_shape(self):
        x = ir.Value(name="x")
        node = ir.Node("", "ReduceSum", inputs=[x], num_outputs=1)
        self.assertFalse(has_known_input_shapes(node, 1))

    def test_missing_input(self):
        node = ir.Node("", "ReduceSum", inputs=[None], num_outputs=1)
        self.assertFalse(has_known_input_shapes(node, 1))
        self.assertFalse(has_known_input_shapes(node, 2))


if __name__ == "__main__":
    unittest.main()
