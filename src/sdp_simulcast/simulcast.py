#
# Copyright (c) 2024-2025, Daily
#
# SPDX-License-Identifier: BSD 2-Clause License
#

"""Simulcast SDP munging entry points.

``Simulcast`` rewrites local descriptions to offer simulcast layers and remote
descriptions to expose (or hide) the remote peer's simulcast layers. One
instance belongs to one peer connection: it caches the layer SSRCs it
generated so renegotiations reuse them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Optional, Tuple

from sdp_simulcast.conference import annotate_conference
from sdp_simulcast.local import LocalSimulcastSynthesizer, SsrcCache, generate_ssrc
from sdp_simulcast.params import SimulcastParams
from sdp_simulcast.remote import explode_remote_simulcast, implode_remote_simulcast
from sdp_simulcast.sdp import MediaDescription, parse_session, transform_video, write_session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionDescription:
    """An SDP offer/answer as exchanged with the peer connection.

    Parameters:
        type: ``offer``, ``answer``, ``pranswer`` or ``rollback``.
        sdp: SDP text.
    """

    type: str
    sdp: str


def validate_description(desc: Optional[SessionDescription]) -> bool:
    """Return True if ``desc`` has a non-empty type and SDP."""
    return bool(desc is not None and desc.type and desc.sdp)


class Simulcast:
    """Simulcast munging for one peer connection.

    Args:
        params: Layer count and remote handling mode.
        cache: Layer cache to use; a new one is created if not given.
        ssrc_generator: Source of new SSRC values.
        is_supported: Reports whether the host can send simulcast. Local
            descriptions are left alone when it returns False.
    """

    def __init__(
        self,
        params: Optional[SimulcastParams] = None,
        *,
        cache: Optional[SsrcCache] = None,
        ssrc_generator: Callable[[], int] = generate_ssrc,
        is_supported: Optional[Callable[[], bool]] = None,
    ):
        self._params = params or SimulcastParams()
        self._synthesizer = LocalSimulcastSynthesizer(
            num_of_layers=self._params.num_of_layers,
            cache=cache,
            ssrc_generator=ssrc_generator,
        )
        self._is_supported = is_supported

    @property
    def params(self) -> SimulcastParams:
        return self._params

    @property
    def ssrc_cache(self) -> Tuple[int, ...]:
        """Layer SSRCs last emitted in a local description."""
        return self._synthesizer.cache.layers

    def is_supported(self) -> bool:
        """Return True if local descriptions should get simulcast layers."""
        if self._is_supported is None:
            return True
        return bool(self._is_supported())

    def clear_cache(self):
        """Forget the cached layer SSRCs."""
        self._synthesizer.cache.clear()

    def set_cache(self, ssrcs: Iterable[int], rtx: Optional[Mapping[int, int]] = None):
        """Pre-seed the cached layer SSRCs.

        When a call starts video muted the layers are assigned up front, so
        the first unmute must restore exactly those SSRCs.

        Args:
            ssrcs: Layer SSRCs in simulcast order.
            rtx: Optional layer SSRC -> RTX SSRC pairs.
        """
        self._synthesizer.cache.force_set(ssrcs, rtx)

    def munge_remote_description(
        self, desc: Optional[SessionDescription]
    ) -> Optional[SessionDescription]:
        """Normalize the simulcast groups of a remote description.

        Args:
            desc: Description received from the remote peer.

        Returns:
            A new description, or ``desc`` itself if it is incomplete.
        """
        if not validate_description(desc):
            return desc

        def _munge(media: MediaDescription) -> MediaDescription:
            if self._params.explode_remote_simulcast:
                media = explode_remote_simulcast(media)
            else:
                media = implode_remote_simulcast(media)
            return self._annotate(media)

        session = transform_video(parse_session(desc.sdp), _munge)
        return SessionDescription(type=desc.type, sdp=write_session(session))

    def munge_local_description(
        self, desc: Optional[SessionDescription]
    ) -> Optional[SessionDescription]:
        """Add simulcast layers to the video sections of a local description.

        Args:
            desc: Description created by the local peer connection.

        Returns:
            A new description, or ``desc`` itself if it is incomplete or
            simulcast is not supported.
        """
        if not validate_description(desc) or not self.is_supported():
            return desc

        def _munge(media: MediaDescription) -> MediaDescription:
            if media.direction in ("recvonly", "inactive"):
                logger.debug("Skipping %s video section", media.direction)
            else:
                media = self._synthesizer.restore_simulcast(media)
            return self._annotate(media)

        session = transform_video(parse_session(desc.sdp), _munge)
        return SessionDescription(type=desc.type, sdp=write_session(session))

    def _annotate(self, media: MediaDescription) -> MediaDescription:
        return annotate_conference(media, simulcast_active=len(self._synthesizer.cache) > 0)
