# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Operator schemas and shape inference rules.

Importing this package registers every schema with the global registry.
"""

from __future__ import annotations

from onnx_reduction_shapes._ops import _arg, _reduce  # noqa: F401
