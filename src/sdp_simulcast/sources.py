#
# Copyright (c) 2024-2025, Daily
#
# SPDX-License-Identifier: BSD 2-Clause License
#

"""Keyed view over a media section's ``a=ssrc`` lines."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from sdp_simulcast.sdp import MediaDescription, SourceEntry

# ssrc -> attribute name -> value
SourceMap = Dict[int, Dict[str, Optional[str]]]


def parse_ssrcs(media: MediaDescription) -> SourceMap:
    """Group source lines by SSRC.

    SSRCs and attributes keep their order of first appearance. A repeated
    attribute keeps its last value.
    """
    sources: SourceMap = {}
    for entry in media.sources:
        sources.setdefault(entry.ssrc, {})[entry.attribute] = entry.value
    return sources


def get_ssrc_attribute(media: MediaDescription, ssrc: int, attribute: str) -> Optional[str]:
    """Return the value of ``attribute`` for ``ssrc``, or None if absent."""
    for entry in media.sources:
        if entry.ssrc == ssrc and entry.attribute == attribute:
            return entry.value
    return None


def write_ssrcs(
    sources: SourceMap, order: Optional[Iterable[int]] = None
) -> Tuple[SourceEntry, ...]:
    """Flatten a SourceMap back into source lines.

    Args:
        sources: Attributes keyed by SSRC.
        order: SSRCs to emit first, in this order. SSRCs missing from
            ``sources`` are skipped; SSRCs not listed follow in map order.

    Returns:
        The source lines.
    """
    emitted: List[int] = []
    for ssrc in order or ():
        if ssrc in sources and ssrc not in emitted:
            emitted.append(ssrc)
    emitted.extend(ssrc for ssrc in sources if ssrc not in emitted)

    return tuple(
        SourceEntry(ssrc=ssrc, attribute=attribute, value=value)
        for ssrc in emitted
        for attribute, value in sources[ssrc].items()
    )
