# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Shared utilities for the reduction shape inference rules."""

from __future__ import annotations

__all__ = [
    "get_int_attr",
    "normalize_axis",
    "reduced_dims",
]

import logging
from collections.abc import Collection

import onnx_ir as ir

logger = logging.getLogger(__name__)


def get_int_attr(node: ir.Node, name: str, default: int) -> int:
    """Read an INT attribute, falling back to *default* when it is absent."""
    attr = node.attributes.get(name)
    if attr is None:
        return default
    return attr.as_int()


def normalize_axis(axis: int, rank: int) -> int:
    """Normalize a potentially negative axis to a non-negative value.

    Values outside ``[-rank, rank)`` are passed through (shifted by *rank*
    when negative) rather than rejected; a warning is logged instead.  A
    scalar (rank 0) has no dimension to select, so any axis is accepted
    silently there.

    Args:
        axis: The axis value, can be negative.
        rank: The tensor rank.

    Returns:
        ``axis + rank`` if *axis* is negative, otherwise *axis*.
    """
    if rank > 0 and (axis < -rank or axis >= rank):
        logger.warning(
            "axis %d is out of range for rank %d; it selects no dimension", axis, rank
        )
    if axis < 0:
        axis += rank
    return axis


def reduced_dims(
    shape: ir.Shape, axes: Collection[int], keepdims: bool
) -> list[int | ir.SymbolicDim]:
    """Dims of *shape* with every axis in *axes* collapsed.

    A collapsed axis becomes ``1`` when *keepdims* is true and is dropped
    otherwise.  All other dims are carried over as-is, including unknown
    symbolic dims.
    """
    new_dims: list[int | ir.SymbolicDim] = []
    for i in range(shape.rank()):
        if i in axes:
            if keepdims:
                new_dims.append(1)
        else:
            new_dims.append(shape[i])
    return new_dims
