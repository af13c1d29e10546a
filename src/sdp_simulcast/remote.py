#
# Copyright (c) 2024-2025, Daily
#
# SPDX-License-Identifier: BSD 2-Clause License
#

"""Normalization of simulcast groups in remote descriptions.

A remote ``SIM`` group can either be exploded, so every layer shows up as an
independent stream/track, or imploded, so only the primary layer is left.
Both transforms return their input unchanged when there is no ``SIM`` group,
which makes them idempotent.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional, Set

from sdp_simulcast.sdp import SIM, MediaDescription, SourceGroup
from sdp_simulcast.sources import parse_ssrcs, write_ssrcs

logger = logging.getLogger(__name__)


def _simulcast_group(media: MediaDescription) -> Optional[SourceGroup]:
    """Return the single SIM group to normalize, or None to leave ``media`` alone."""
    if not media.groups:
        logger.debug("No SSRC groups in the remote video section")
        return None

    sim_groups = media.groups_with(SIM)
    if not sim_groups:
        return None
    if len(sim_groups) > 1:
        logger.warning("Ignoring video section with %d SIM groups", len(sim_groups))
        return None

    sim_group = sim_groups[0]
    known = set(media.ssrcs)
    referenced = set(sim_group.ssrcs)
    for group in _related_groups(media, sim_group.ssrcs):
        referenced.update(group.ssrcs)
    missing = referenced - known
    if missing:
        logger.warning("Ignoring SIM group %s: no source lines for %s", sim_group.ssrcs, sorted(missing))
        return None
    return sim_group


def _related_groups(media: MediaDescription, ssrcs) -> List[SourceGroup]:
    """Return the non-SIM groups that reference any of ``ssrcs``."""
    return [
        group
        for group in media.groups
        if group.semantics != SIM and any(ssrc in group for ssrc in ssrcs)
    ]


def _layer_msid(msid: str, layer: int) -> str:
    return " ".join(f"{part}/{layer}" for part in msid.split(" "))


def explode_remote_simulcast(media: MediaDescription) -> MediaDescription:
    """Turn every simulcast layer into an independent stream/track.

    Each layer's ``msid`` and ``cname`` get a ``/<layer>`` suffix, and the
    members of groups related to a layer (e.g. its ``FID`` RTX stream) take
    on the same identity. The SIM group is removed.

    Args:
        media: Remote video section.

    Returns:
        The exploded section, or ``media`` if there is nothing to explode.
    """
    sim_group = _simulcast_group(media)
    if sim_group is None:
        return media

    logger.info("Exploding SIM group: %s", " ".join(str(s) for s in sim_group.ssrcs))
    sources = parse_ssrcs(media)
    order: List[int] = []

    for layer, ssrc in enumerate(sim_group.ssrcs):
        order.append(ssrc)
        attributes = sources[ssrc]
        if attributes.get("msid"):
            attributes["msid"] = _layer_msid(attributes["msid"], layer)
        if attributes.get("cname"):
            attributes["cname"] = f"{attributes['cname']}/{layer}"

        for group in _related_groups(media, [ssrc]):
            for related in group.ssrcs:
                for name in ("msid", "cname"):
                    if name in attributes:
                        sources[related][name] = attributes[name]
                if related not in order:
                    order.append(related)

    return replace(
        media,
        sources=write_ssrcs(sources, order),
        groups=tuple(group for group in media.groups if group.semantics != SIM),
    )


def implode_remote_simulcast(media: MediaDescription) -> MediaDescription:
    """Keep only the primary layer of a simulcast stream.

    The higher layers, every group that references them and all of those
    groups' members are removed together with the SIM group.

    Args:
        media: Remote video section.

    Returns:
        The imploded section, or ``media`` if there is nothing to implode.
    """
    sim_group = _simulcast_group(media)
    if sim_group is None:
        return media

    logger.info("Imploding SIM group: %s", " ".join(str(s) for s in sim_group.ssrcs))

    higher_layers = sim_group.ssrcs[1:]
    removed_ssrcs: Set[int] = set(higher_layers)
    removed_groups: Set[int] = set()
    for index, group in enumerate(media.groups):
        if group.semantics == SIM:
            removed_groups.add(index)
        elif any(ssrc in group for ssrc in higher_layers):
            removed_groups.add(index)
            removed_ssrcs.update(group.ssrcs)

    sources = {
        ssrc: attributes
        for ssrc, attributes in parse_ssrcs(media).items()
        if ssrc not in removed_ssrcs
    }
    return replace(
        media,
        sources=write_ssrcs(sources),
        groups=tuple(
            group for index, group in enumerate(media.groups) if index not in removed_groups
        ),
    )
