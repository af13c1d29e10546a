#
# Copyright (c) 2024-2025, Daily
#
# SPDX-License-Identifier: BSD 2-Clause License
#

"""Simulcast SDP munging.

Provides Simulcast, which adds stable simulcast layers to local WebRTC video
descriptions and explodes or implodes simulcast groups in remote ones.
"""

from sdp_simulcast.local import LocalSimulcastSynthesizer, SsrcCache, generate_ssrc
from sdp_simulcast.params import SimulcastParams
from sdp_simulcast.simulcast import SessionDescription, Simulcast

__all__ = [
    "LocalSimulcastSynthesizer",
    "SessionDescription",
    "Simulcast",
    "SimulcastParams",
    "SsrcCache",
    "generate_ssrc",
]
