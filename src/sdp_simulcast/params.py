#
# Copyright (c) 2024-2025, Daily
#
# SPDX-License-Identifier: BSD 2-Clause License
#

"""Simulcast munging parameters."""

from __future__ import annotations

from pydantic import BaseModel, Field

from sdp_simulcast.local import DEFAULT_NUM_OF_LAYERS


class SimulcastParams(BaseModel):
    """Configuration for a Simulcast instance, fixed at construction.

    Parameters:
        num_of_layers: Number of simulcast layers to offer, primary included.
        explode_remote_simulcast: Expose remote simulcast layers as separate
            streams instead of keeping only the primary layer.
    """

    num_of_layers: int = Field(default=DEFAULT_NUM_OF_LAYERS, ge=1)
    explode_remote_simulcast: bool = False
