#
# Copyright (c) 2024-2025, Daily
#
# SPDX-License-Identifier: BSD 2-Clause License
#

"""Simulcast layer synthesis for local descriptions.

The browser only offers a single primary video source (optionally with an
RTX stream). ``LocalSimulcastSynthesizer`` adds the extra layers a simulcast
receiver expects and caches them, so the same primary SSRC always comes back
with the same layer SSRCs across renegotiations.
"""

from __future__ import annotations

import logging
import random
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from sdp_simulcast.sdp import FID, SIM, MediaDescription, SourceEntry, SourceGroup
from sdp_simulcast.sources import get_ssrc_attribute

logger = logging.getLogger(__name__)

DEFAULT_NUM_OF_LAYERS = 3


def generate_ssrc() -> int:
    """Return a uniformly random 32-bit SSRC."""
    return random.randint(0, 0xFFFFFFFF)


class SsrcCache:
    """Layer SSRCs last emitted for a local video source.

    ``layers`` is in simulcast order, index 0 being the primary layer. RTX
    SSRCs are remembered per layer so restored layers keep their RTX streams.
    """

    def __init__(self):
        self._layers: List[int] = []
        self._rtx: Dict[int, int] = {}

    @property
    def layers(self) -> Tuple[int, ...]:
        return tuple(self._layers)

    def rtx_for(self, ssrc: int) -> Optional[int]:
        """Return the RTX SSRC last paired with layer ``ssrc``."""
        return self._rtx.get(ssrc)

    def clear(self):
        """Forget every cached layer."""
        self._layers = []
        self._rtx = {}

    def force_set(self, ssrcs: Iterable[int], rtx: Optional[Mapping[int, int]] = None):
        """Overwrite the cache.

        Used when the layers were assigned before the first local description
        was munged, e.g. when the call started video muted.

        Args:
            ssrcs: Layer SSRCs in simulcast order.
            rtx: Optional layer SSRC -> RTX SSRC pairs.
        """
        self._layers = [int(ssrc) for ssrc in ssrcs]
        self._rtx = {int(k): int(v) for k, v in (rtx or {}).items()}

    def __contains__(self, ssrc: object) -> bool:
        return ssrc in self._layers

    def __len__(self) -> int:
        return len(self._layers)


def parse_sim_layers(media: MediaDescription, primary_ssrc: Optional[int] = None) -> List[int]:
    """Return the video SSRCs of ``media`` in simulcast layer order.

    Without a SIM group this is just the primary SSRC (``primary_ssrc`` if
    given, else the first source).
    """
    sim_group = media.find_group(SIM)
    if sim_group is not None:
        return list(sim_group.ssrcs)
    if primary_ssrc is not None:
        return [primary_ssrc]
    return media.ssrcs[:1]


def _associated_entries(ssrc: int, msid: Optional[str], cname: Optional[str]) -> List[SourceEntry]:
    entries = []
    if cname is not None:
        entries.append(SourceEntry(ssrc=ssrc, attribute="cname", value=cname))
    if msid is not None:
        entries.append(SourceEntry(ssrc=ssrc, attribute="msid", value=msid))
    return entries


class LocalSimulcastSynthesizer:
    """Adds simulcast layers to single-source local video sections.

    Args:
        num_of_layers: Total number of layers, primary included.
        cache: Layer cache to use; a new one is created if not given.
        ssrc_generator: Source of new SSRC values.
    """

    def __init__(
        self,
        num_of_layers: int = DEFAULT_NUM_OF_LAYERS,
        cache: Optional[SsrcCache] = None,
        ssrc_generator: Callable[[], int] = generate_ssrc,
    ):
        self._num_of_layers = num_of_layers
        self._cache = cache if cache is not None else SsrcCache()
        self._generate_ssrc = ssrc_generator

    @property
    def cache(self) -> SsrcCache:
        return self._cache

    def restore_simulcast(self, media: MediaDescription) -> MediaDescription:
        """Add simulcast layers to ``media``.

        A primary SSRC seen before gets its cached layers back; an unseen one
        gets new layers. If the primary has an RTX stream, every layer gets
        one too. Unsupported topologies are returned unchanged.

        Args:
            media: Local video section with a single primary source.

        Returns:
            The section with a SIM group, or ``media`` unchanged.
        """
        if self._num_of_layers < 2:
            return media

        primary = self._find_primary_ssrc(media)
        if primary is None:
            return media
        primary_ssrc, doing_rtx = primary
        logger.debug("Parsed primary ssrc %d (rtx: %s)", primary_ssrc, doing_rtx)

        if primary_ssrc in self._cache:
            media = self._fill_in_source_data_from_cache(media, primary_ssrc, doing_rtx)
        else:
            media = self._generate_source_data(media, primary_ssrc, doing_rtx)

        layers = parse_sim_layers(media)
        rtx = {
            group.ssrcs[0]: group.ssrcs[1]
            for group in media.groups_with(FID)
            if len(group.ssrcs) == 2 and group.ssrcs[0] in layers
        }
        self._cache.force_set(layers, rtx)
        return media

    def _find_primary_ssrc(self, media: MediaDescription) -> Optional[Tuple[int, bool]]:
        """Return ``(primary_ssrc, doing_rtx)``, or None for unsupported topologies."""
        ssrcs = media.ssrcs
        if not ssrcs or len(ssrcs) > 2:
            logger.debug("Unsupported number of video sources: %d", len(ssrcs))
            return None
        if media.find_group(SIM) is not None:
            logger.debug("Video section already carries a SIM group")
            return None

        if len(ssrcs) == 1:
            return ssrcs[0], False

        fid_group = media.find_group(FID)
        if fid_group is None or not fid_group.ssrcs or fid_group.ssrcs[0] not in ssrcs:
            logger.debug("Two video sources without a usable FID group")
            return None
        return fid_group.ssrcs[0], True

    def _generate_source_data(
        self, media: MediaDescription, primary_ssrc: int, doing_rtx: bool
    ) -> MediaDescription:
        msid = get_ssrc_attribute(media, primary_ssrc, "msid")
        cname = get_ssrc_attribute(media, primary_ssrc, "cname")

        sources = list(media.sources)
        sim_ssrcs = []
        for _ in range(self._num_of_layers - 1):
            sim_ssrc = self._generate_ssrc()
            sources.extend(_associated_entries(sim_ssrc, msid, cname))
            sim_ssrcs.append(sim_ssrc)
        groups = list(media.groups)
        groups.append(SourceGroup(semantics=SIM, ssrcs=(primary_ssrc, *sim_ssrcs)))

        if doing_rtx:
            for sim_ssrc in sim_ssrcs:
                rtx_ssrc = self._generate_ssrc()
                sources.extend(_associated_entries(rtx_ssrc, msid, cname))
                groups.append(SourceGroup(semantics=FID, ssrcs=(sim_ssrc, rtx_ssrc)))

        logger.info("Generated simulcast layers for %d: %s", primary_ssrc, sim_ssrcs)
        return replace(media, sources=tuple(sources), groups=tuple(groups))

    def _fill_in_source_data_from_cache(
        self, media: MediaDescription, primary_ssrc: int, doing_rtx: bool
    ) -> MediaDescription:
        new_layers = parse_sim_layers(media, primary_ssrc)
        msid = get_ssrc_attribute(media, new_layers[0], "msid")
        cname = get_ssrc_attribute(media, new_layers[0], "cname")

        cached = self._cache.layers
        ssrc_map: Dict[int, Optional[int]] = {
            ssrc: cached[index] if index < len(cached) else None
            for index, ssrc in enumerate(new_layers)
        }
        # The new description may carry fewer layers than the cache.
        ssrcs_to_add = [ssrc for ssrc in cached if ssrc not in ssrc_map.values()]

        def _mapped(ssrc: int) -> int:
            cached_ssrc = ssrc_map.get(ssrc)
            return ssrc if cached_ssrc is None else cached_ssrc

        sources = [replace(entry, ssrc=_mapped(entry.ssrc)) for entry in media.sources]
        groups = [
            replace(group, ssrcs=tuple(_mapped(ssrc) for ssrc in group.ssrcs))
            for group in media.groups
        ]
        final_layers = [_mapped(ssrc) for ssrc in new_layers]

        rtx_groups = []
        for ssrc in ssrcs_to_add:
            sources.extend(_associated_entries(ssrc, msid, cname))
            final_layers.append(ssrc)
            if doing_rtx:
                rtx_ssrc = self._cache.rtx_for(ssrc)
                if rtx_ssrc is None:
                    rtx_ssrc = self._generate_ssrc()
                sources.extend(_associated_entries(rtx_ssrc, msid, cname))
                rtx_groups.append(SourceGroup(semantics=FID, ssrcs=(ssrc, rtx_ssrc)))

        groups.append(SourceGroup(semantics=SIM, ssrcs=tuple(final_layers)))
        groups.extend(rtx_groups)

        logger.info("Restored simulcast layers for %d: %s", primary_ssrc, final_layers)
        return replace(media, sources=tuple(sources), groups=tuple(groups))
